"""SQLite-backed transaction and budget stores.

Both stores implement the small contract the rest of the package relies on:

* ``SqliteTransactionStore``: ``query``, ``get``, ``create``, ``update``,
  ``delete``, always scoped by owner.
* ``SqliteBudgetStore``: ``get`` (``None`` when the month has no budget) and
  ``upsert`` keyed on ``(owner_id, month)``.

Any ``sqlite3`` failure is logged and re-raised as
:class:`~finance_tracker.errors.DataUnavailable`.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .config import DB_PATH, ensure_data_directories
from .errors import DataUnavailable, InvalidArgument, NotFound
from .models import (
    TRANSACTION_CLASSES,
    Budget,
    Transaction,
    coerce_date,
    make_transaction,
    parse_month_key,
    transaction_from_record,
    transaction_to_record,
    validate_kind,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('expense', 'income', 'investment')),
    amount REAL NOT NULL CHECK (amount > 0),
    source TEXT NOT NULL DEFAULT '',
    investment_name TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    date TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_txn_user_date ON transactions (user_id, date);
CREATE INDEX IF NOT EXISTS ix_txn_user_type ON transactions (user_id, type);

CREATE TABLE IF NOT EXISTS budgets (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    month TEXT NOT NULL,
    monthly_limit REAL NOT NULL CHECK (monthly_limit > 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, month)
);
"""

TRANSACTION_COLUMNS = (
    'id', 'user_id', 'type', 'amount', 'source', 'investment_name',
    'tags', 'date', 'created_at', 'updated_at',
)

UPDATABLE_FIELDS = {'kind', 'amount', 'label', 'category', 'instrument_name', 'tags', 'occurred_on'}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise InvalidArgument("owner_id is required")
    return owner_id


def _iso_date(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return coerce_date(value).isoformat()


class SqliteStore:
    """Shared connection handling for the sqlite-backed stores."""

    def __init__(self, db_path: Optional[Union[str, Path]] = None, initialize: bool = True):
        if db_path is None:
            ensure_data_directories()
            db_path = DB_PATH
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(db_path)
        if initialize:
            self.init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            logger.error("Could not open database %s: %s", self.db_path, exc)
            raise DataUnavailable(f"Could not open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Database operation failed on %s: %s", self.db_path, exc)
            raise DataUnavailable(f"Database operation failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)


class SqliteTransactionStore(SqliteStore):
    """Owner-scoped transaction records."""

    def query(
        self,
        owner_id: str,
        kind: Optional[str] = None,
        start_date: Any = None,
        end_date: Any = None,
    ) -> List[Transaction]:
        """Fetch an owner's transactions, newest first.

        Args:
            owner_id: Owner to scope the query to.
            kind: Optional transaction kind.
            start_date: Optional inclusive lower bound (date or ISO string).
            end_date: Optional inclusive upper bound (date or ISO string).

        Raises:
            InvalidArgument: For an unknown kind, bad dates or ``end < start``.
            DataUnavailable: If the database fails or returns a malformed row.
        """
        where: List[str] = ["user_id = ?"]
        params: List[Any] = [_require_owner(owner_id)]

        if kind is not None:
            where.append("type = ?")
            params.append(validate_kind(kind))
        start = _iso_date(start_date)
        end = _iso_date(end_date)
        if start and end and end < start:
            raise InvalidArgument(f"end_date {end} is before start_date {start}")
        if start:
            where.append("date >= ?")
            params.append(start)
        if end:
            where.append("date <= ?")
            params.append(end)

        sql = "SELECT * FROM transactions WHERE " + " AND ".join(where)
        sql += " ORDER BY date DESC, created_at DESC"

        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._decode(row) for row in rows]

    def _decode(self, row: sqlite3.Row) -> Transaction:
        try:
            return transaction_from_record(dict(row))
        except InvalidArgument as exc:
            logger.error("Stored transaction %s is malformed: %s", row['id'], exc)
            raise DataUnavailable(f"Stored transaction {row['id']} is malformed: {exc}") from exc

    def _fetch_row(self, conn: sqlite3.Connection, transaction_id: str, owner_id: Optional[str]) -> sqlite3.Row:
        sql = "SELECT * FROM transactions WHERE id = ?"
        params: List[Any] = [transaction_id]
        if owner_id is not None:
            sql += " AND user_id = ?"
            params.append(owner_id)
        row = conn.execute(sql, params).fetchone()
        if row is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        return row

    def get(self, transaction_id: str, owner_id: Optional[str] = None) -> Transaction:
        with self.connect() as conn:
            row = self._fetch_row(conn, transaction_id, owner_id)
        return self._decode(row)

    def create(self, transaction: Union[Transaction, Dict[str, Any]]) -> Transaction:
        """Insert a transaction, assigning an id and timestamps."""
        if not isinstance(transaction, Transaction):
            transaction = transaction_from_record(transaction)
        now = _timestamp()
        saved = dataclasses.replace(
            transaction,
            id=transaction.id or uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
        )
        record = transaction_to_record(saved)
        record['tags'] = json.dumps(record['tags'])
        placeholders = ", ".join("?" for _ in TRANSACTION_COLUMNS)
        sql = f"INSERT INTO transactions ({', '.join(TRANSACTION_COLUMNS)}) VALUES ({placeholders})"

        with self.connect() as conn:
            try:
                conn.execute(sql, [record[column] for column in TRANSACTION_COLUMNS])
            except sqlite3.IntegrityError as exc:
                raise InvalidArgument(f"Transaction {saved.id} could not be stored: {exc}") from exc
        logger.debug("Created %s transaction %s for %s", saved.kind, saved.id, saved.owner_id)
        return saved

    def update(self, transaction_id: str, *, owner_id: Optional[str] = None, **fields: Any) -> Transaction:
        """Apply a partial update and return the stored result.

        Accepted fields: ``kind``, ``amount``, ``label``, ``category``,
        ``instrument_name``, ``tags`` and ``occurred_on``.  Changing ``kind``
        keeps the existing label unless a new one is given.

        Raises:
            InvalidArgument: For unknown or invalid fields.
            NotFound: If no such transaction exists for the owner.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidArgument(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if not fields:
            raise InvalidArgument("No fields to update")
        kind = validate_kind(fields.get('kind')) if 'kind' in fields else None

        with self.connect() as conn:
            current = self._decode(self._fetch_row(conn, transaction_id, owner_id))
            kind = kind or current.kind
            label_field = TRANSACTION_CLASSES[kind].label_field
            misplaced = {'category', 'instrument_name'} - {label_field}
            if misplaced & set(fields):
                raise InvalidArgument(f"{kind} transactions use '{label_field}' for their label")
            label = fields.get('label') or fields.get(label_field) or current.label
            updated = make_transaction(
                kind,
                label=label,
                owner_id=current.owner_id,
                amount=fields.get('amount', current.amount),
                occurred_on=fields.get('occurred_on', current.occurred_on),
                tags=fields.get('tags', current.tags),
                id=current.id,
                created_at=current.created_at,
                updated_at=_timestamp(),
            )
            record = transaction_to_record(updated)
            record['tags'] = json.dumps(record['tags'])
            columns = [column for column in TRANSACTION_COLUMNS if column not in ('id', 'user_id', 'created_at')]
            assignments = ", ".join(f"{column} = ?" for column in columns)
            conn.execute(
                f"UPDATE transactions SET {assignments} WHERE id = ?",
                [record[column] for column in columns] + [current.id],
            )
        logger.debug("Updated transaction %s", transaction_id)
        return updated

    def delete(self, transaction_id: str, owner_id: Optional[str] = None) -> None:
        """Remove a transaction; deleting a missing id is a no-op."""
        sql = "DELETE FROM transactions WHERE id = ?"
        params: List[Any] = [transaction_id]
        if owner_id is not None:
            sql += " AND user_id = ?"
            params.append(owner_id)
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
        if cursor.rowcount == 0:
            logger.debug("Delete of transaction %s matched nothing", transaction_id)


class SqliteBudgetStore(SqliteStore):
    """One budget per ``(owner_id, month)``."""

    @staticmethod
    def _decode(row: sqlite3.Row) -> Budget:
        return Budget(
            owner_id=row['user_id'],
            month=row['month'],
            limit=row['monthly_limit'],
            id=row['id'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    def get(self, owner_id: str, month: str) -> Optional[Budget]:
        """Return the month's budget, or None when none has been saved."""
        _require_owner(owner_id)
        parse_month_key(month)
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM budgets WHERE user_id = ? AND month = ?",
                (owner_id, month),
            ).fetchone()
        return self._decode(row) if row is not None else None

    def upsert(self, owner_id: str, month: str, limit: float) -> Budget:
        """Create the month's budget or update its limit in place."""
        candidate = Budget(owner_id=owner_id, month=month, limit=limit)
        now = _timestamp()
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO budgets (id, user_id, month, monthly_limit, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT (user_id, month) DO UPDATE SET "
                "monthly_limit = excluded.monthly_limit, updated_at = excluded.updated_at",
                (uuid.uuid4().hex, candidate.owner_id, candidate.month, candidate.limit, now, now),
            )
            row = conn.execute(
                "SELECT * FROM budgets WHERE user_id = ? AND month = ?",
                (candidate.owner_id, candidate.month),
            ).fetchone()
        return self._decode(row)

"""Domain records: transactions, budgets and their storage mapping.

A transaction is a tagged variant.  ``Expense`` and ``Income`` carry a
``category`` while ``Investment`` carries an ``instrument_name``; all three
share the common fields on :class:`Transaction`.  The flat storage record
keeps both labels in one ``source`` column (plus ``investment_name``), and
:func:`transaction_from_record` / :func:`transaction_to_record` are the only
places that know about that overloading.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Type

from .errors import InvalidArgument

EXPENSE = 'expense'
INCOME = 'income'
INVESTMENT = 'investment'
KINDS: Tuple[str, ...] = (EXPENSE, INCOME, INVESTMENT)

_MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _coerce_amount(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidArgument(f"Amount must be a number, got {value!r}")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Amount must be a number, got {value!r}") from None
    if math.isnan(amount) or amount <= 0:
        raise InvalidArgument(f"Amount must be positive, got {value!r}")
    return amount


def coerce_date(value: Any) -> date:
    """Turn a date, datetime or ISO ``YYYY-MM-DD`` string into a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise InvalidArgument(f"Invalid calendar date {value!r}") from None
    raise InvalidArgument(f"Invalid calendar date {value!r}")


def normalize_tags(tags: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Strip, drop empties and de-duplicate while keeping first-seen order."""
    if tags is None:
        return ()
    if isinstance(tags, str):
        tags = tags.split(',')
    seen: Dict[str, None] = {}
    for tag in tags:
        if tag is None:
            continue
        cleaned = str(tag).strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return tuple(seen)


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(key: str) -> Tuple[int, int]:
    """Split a ``YYYY-MM`` key into ``(year, month)``.

    Raises:
        InvalidArgument: If the key is not a valid year-month.
    """
    match = _MONTH_KEY_PATTERN.match(key or '') if isinstance(key, str) else None
    if not match:
        raise InvalidArgument(f"Month must look like YYYY-MM, got {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidArgument(f"Month must look like YYYY-MM, got {key!r}")
    return year, month


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """Fields shared by every transaction kind.

    Not instantiated directly; use :class:`Expense`, :class:`Income` or
    :class:`Investment`.
    """

    kind: ClassVar[str] = ''
    label_field: ClassVar[str] = ''

    owner_id: str
    amount: float
    occurred_on: date
    tags: Tuple[str, ...] = ()
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        if type(self) is Transaction:
            raise TypeError("Transaction is abstract; use Expense, Income or Investment")
        if not self.owner_id:
            raise InvalidArgument("owner_id is required")
        object.__setattr__(self, 'amount', _coerce_amount(self.amount))
        object.__setattr__(self, 'occurred_on', coerce_date(self.occurred_on))
        object.__setattr__(self, 'tags', normalize_tags(self.tags))
        label = getattr(self, self.label_field)
        if not isinstance(label, str) or not label.strip():
            raise InvalidArgument(f"{self.label_field} is required for {self.kind} transactions")
        object.__setattr__(self, self.label_field, label.strip())

    @property
    def label(self) -> str:
        """Category for expense/income, instrument name for investments."""
        return getattr(self, self.label_field)


@dataclass(frozen=True)
class Expense(Transaction):
    kind: ClassVar[str] = EXPENSE
    label_field: ClassVar[str] = 'category'

    category: str = ''


@dataclass(frozen=True)
class Income(Transaction):
    kind: ClassVar[str] = INCOME
    label_field: ClassVar[str] = 'category'

    category: str = ''


@dataclass(frozen=True)
class Investment(Transaction):
    kind: ClassVar[str] = INVESTMENT
    label_field: ClassVar[str] = 'instrument_name'

    instrument_name: str = ''


TRANSACTION_CLASSES: Dict[str, Type[Transaction]] = {
    EXPENSE: Expense,
    INCOME: Income,
    INVESTMENT: Investment,
}


def validate_kind(kind: Optional[str]) -> str:
    if kind not in TRANSACTION_CLASSES:
        raise InvalidArgument(f"Unknown transaction kind {kind!r}; expected one of {', '.join(KINDS)}")
    return kind


def make_transaction(kind: str, label: Optional[str] = None, **fields: Any) -> Transaction:
    """Build the variant for ``kind``.

    ``label`` fills whichever label field the variant uses, so callers that
    only know "the label" (forms, kind changes) do not need to branch.
    """
    cls = TRANSACTION_CLASSES[validate_kind(kind)]
    if label is not None:
        fields[cls.label_field] = label
    return cls(**fields)


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != '':
            return value
    return None


def _decode_tags(raw: Any) -> Tuple[str, ...]:
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith('['):
            try:
                raw = json.loads(stripped)
            except json.JSONDecodeError:
                raise InvalidArgument(f"Malformed tag list {raw!r}") from None
    return normalize_tags(raw)


def transaction_from_record(record: Mapping[str, Any]) -> Transaction:
    """Build a transaction variant from a flat storage record.

    Accepts the storage column names (``user_id``, ``type``, ``source``,
    ``investment_name``, ``date``) as well as the attribute names.
    """
    kind = validate_kind(_first(record, 'type', 'kind'))
    if kind == INVESTMENT:
        label = _first(record, 'instrument_name', 'investment_name', 'source')
    else:
        label = _first(record, 'category', 'source')
    return make_transaction(
        kind,
        label=label or '',
        owner_id=_first(record, 'owner_id', 'user_id'),
        amount=record.get('amount'),
        occurred_on=_first(record, 'occurred_on', 'date'),
        tags=_decode_tags(record.get('tags')),
        id=_first(record, 'id'),
        created_at=_first(record, 'created_at'),
        updated_at=_first(record, 'updated_at'),
    )


def transaction_to_record(txn: Transaction) -> Dict[str, Any]:
    """Flatten a transaction into the storage record shape."""
    return {
        'id': txn.id,
        'user_id': txn.owner_id,
        'type': txn.kind,
        'amount': txn.amount,
        'source': txn.label if txn.kind != INVESTMENT else '',
        'investment_name': txn.label if txn.kind == INVESTMENT else None,
        'tags': list(txn.tags),
        'date': txn.occurred_on.isoformat(),
        'created_at': txn.created_at,
        'updated_at': txn.updated_at,
    }


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Budget:
    """Monthly spending ceiling, unique per ``(owner_id, month)``."""

    owner_id: str
    month: str
    limit: float
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise InvalidArgument("owner_id is required")
        parse_month_key(self.month)
        object.__setattr__(self, 'limit', _coerce_amount(self.limit))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.owner_id, self.month)

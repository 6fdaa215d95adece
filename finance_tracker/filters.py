"""In-memory narrowing of an already-fetched transaction collection.

The store has applied the reporting window; the helpers here add free-text
search, tag matching and pagination on top.  Nothing in this module performs
I/O or mutates its input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, Sequence, TypeVar

from .config import DEFAULT_PAGE_SIZE
from .errors import InvalidArgument
from .models import Transaction, normalize_tags

T = TypeVar('T')


def _normalize_search(search_text: Optional[str]) -> str:
    return (search_text or '').strip().lower()


def matches_search(txn: Transaction, search_text: Optional[str]) -> bool:
    """Case-insensitive substring match against the category/instrument name."""
    needle = _normalize_search(search_text)
    if not needle:
        return True
    return needle in txn.label.lower()


def matches_tags(txn: Transaction, required_tags: Optional[Iterable[str]]) -> bool:
    """True when ``txn`` carries at least one of ``required_tags``."""
    wanted = set(normalize_tags(required_tags))
    if not wanted:
        return True
    return not wanted.isdisjoint(txn.tags)


def filter_transactions(
    transactions: Sequence[Transaction],
    search_text: Optional[str] = None,
    required_tags: Optional[Iterable[str]] = None,
) -> List[Transaction]:
    """Apply search and tag filters, keeping the original relative order.

    Args:
        transactions: Collection to narrow.
        search_text: Substring to look for in each label; blank disables it.
        required_tags: Tags to match with OR semantics; empty disables it.

    Returns:
        A new list. With no active filter it holds the same elements in the
        same order as the input.
    """
    needle = _normalize_search(search_text)
    wanted = frozenset(normalize_tags(required_tags))
    if not needle and not wanted:
        return list(transactions)
    return [txn for txn in transactions if matches_search(txn, needle) and matches_tags(txn, wanted)]


def distinct_tags(transactions: Iterable[Transaction]) -> List[str]:
    """Sorted unique tags across ``transactions``."""
    return sorted({tag for txn in transactions for tag in txn.tags if tag.strip()})


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    page: int
    per_page: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_items / self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def paginate(items: Sequence[T], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    """Slice one page out of a filtered view (pages are 1-based).

    Raises:
        InvalidArgument: If ``page`` or ``per_page`` is below 1.
    """
    if page < 1:
        raise InvalidArgument(f"page must be >= 1, got {page}")
    if per_page < 1:
        raise InvalidArgument(f"per_page must be >= 1, got {per_page}")
    offset = (page - 1) * per_page
    return Page(
        items=list(items[offset:offset + per_page]),
        page=page,
        per_page=per_page,
        total_items=len(items),
    )

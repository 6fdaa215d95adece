"""Reporting-window resolution.

Every query and aggregation is scoped by a :class:`DateRange` whose bounds are
day boundaries in the single fixed-offset reporting timezone returned by
:func:`finance_tracker.config.reporting_timezone`.  Viewer-local time is never
consulted: a calendar day means the same thing to every user.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, List, Optional, Tuple

from .config import ALL_TIME_START, reporting_timezone
from .errors import InvalidArgument
from .models import month_key, parse_month_key

TODAY = 'today'
LAST_7_DAYS = 'last7Days'
THIS_MONTH = 'thisMonth'
LAST_MONTH = 'lastMonth'
THIS_YEAR = 'thisYear'
ALL_TIME = 'allTime'

PRESETS: Tuple[str, ...] = (TODAY, LAST_7_DAYS, THIS_MONTH, LAST_MONTH, THIS_YEAR, ALL_TIME)

END_OF_DAY = time(23, 59, 59)

MONTH = 'month'
QUARTER = 'quarter'
YEAR = 'year'

PERIODS: Tuple[str, ...] = (MONTH, QUARTER, YEAR)


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[start, end]`` window anchored to the reporting timezone."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
            raise InvalidArgument("Range bounds must be datetimes")
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidArgument("Range bounds must be timezone-aware")
        if self.end < self.start:
            raise InvalidArgument(
                f"Range end {self.end.isoformat()} is before start {self.start.isoformat()}"
            )

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def contains(self, value: date) -> bool:
        return self.start_date <= value <= self.end_date

    def months(self) -> List[str]:
        """Year-month keys touched by the window, oldest first."""
        keys: List[str] = []
        year, month = self.start_date.year, self.start_date.month
        last = (self.end_date.year, self.end_date.month)
        while (year, month) <= last:
            keys.append(f"{year:04d}-{month:02d}")
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return keys

    def days(self) -> List[date]:
        count = (self.end_date - self.start_date).days + 1
        return [self.start_date + timedelta(days=offset) for offset in range(count)]

    def as_query_bounds(self) -> Tuple[str, str]:
        """ISO calendar dates for the store's inclusive date filter."""
        return self.start_date.isoformat(), self.end_date.isoformat()


def start_of_day(value: date, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.combine(value, time.min, tzinfo=tz or reporting_timezone())


def end_of_day(value: date, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.combine(value, END_OF_DAY, tzinfo=tz or reporting_timezone())


def now_in_reporting_tz(now: Optional[datetime] = None) -> datetime:
    """Current moment in the reporting timezone (naive inputs are read as UTC)."""
    tz = reporting_timezone()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def today(now: Optional[datetime] = None) -> date:
    return now_in_reporting_tz(now).date()


def current_month_key(now: Optional[datetime] = None) -> str:
    return month_key(today(now))


def _day_window(first: date, last: date) -> DateRange:
    tz = reporting_timezone()
    return DateRange(start_of_day(first, tz), end_of_day(last, tz))


def resolve_preset(preset: str, now: Optional[datetime] = None) -> DateRange:
    """Resolve a named preset into concrete bounds.

    Args:
        preset: One of :data:`PRESETS`.
        now: Reference moment; defaults to the current time.

    Returns:
        The resolved window. Open-ended presets end at 23:59:59 today.

    Raises:
        InvalidArgument: If ``preset`` is not a known preset.
    """
    current = today(now)
    if preset == TODAY:
        return _day_window(current, current)
    if preset == LAST_7_DAYS:
        return _day_window(current - timedelta(days=7), current)
    if preset == THIS_MONTH:
        return _day_window(current.replace(day=1), current)
    if preset == LAST_MONTH:
        last_of_previous = current.replace(day=1) - timedelta(days=1)
        return _day_window(last_of_previous.replace(day=1), last_of_previous)
    if preset == THIS_YEAR:
        return _day_window(date(current.year, 1, 1), current)
    if preset == ALL_TIME:
        return _day_window(ALL_TIME_START, current)
    raise InvalidArgument(f"Unknown date range preset {preset!r}; expected one of {', '.join(PRESETS)}")


def _to_reporting_date(value: Any) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(reporting_timezone()).date()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise InvalidArgument(f"Invalid calendar date {value!r}") from None
    raise InvalidArgument(f"Invalid calendar date {value!r}")


def custom_range(start: Any, end: Any) -> DateRange:
    """Normalize an explicit start/end pair to whole reporting days.

    Raises:
        InvalidArgument: If either bound is not a date, or ``end < start``.
            The pair is never swapped.
    """
    first = _to_reporting_date(start)
    last = _to_reporting_date(end)
    return _day_window(first, last)


def month_range(key: str) -> DateRange:
    """Full calendar month for a ``YYYY-MM`` key."""
    year, month = parse_month_key(key)
    last_day = calendar.monthrange(year, month)[1]
    return _day_window(date(year, month, 1), date(year, month, last_day))


def normalize_range(value: Any, now: Optional[datetime] = None) -> DateRange:
    """Accept a preset name, a ``(start, end)`` pair or a ready ``DateRange``."""
    if isinstance(value, DateRange):
        return value
    if isinstance(value, str):
        return resolve_preset(value, now=now)
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return custom_range(value[0], value[1])
    raise InvalidArgument(f"Cannot interpret {value!r} as a date range")


def period_range(period: str, reference: Any = None, now: Optional[datetime] = None) -> DateRange:
    """Whole calendar month, quarter or year containing ``reference``.

    Unlike the presets, the window always runs to the period's last day.

    Args:
        period: One of :data:`PERIODS`.
        reference: Date inside the period; defaults to today in the
            reporting timezone.
        now: Reference moment used when ``reference`` is omitted.

    Raises:
        InvalidArgument: If ``period`` is unknown or ``reference`` is not a date.
    """
    anchor = today(now) if reference is None else _to_reporting_date(reference)
    if period == MONTH:
        first_month, last_month = anchor.month, anchor.month
    elif period == QUARTER:
        first_month = 3 * ((anchor.month - 1) // 3) + 1
        last_month = first_month + 2
    elif period == YEAR:
        first_month, last_month = 1, 12
    else:
        raise InvalidArgument(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")
    last_day = calendar.monthrange(anchor.year, last_month)[1]
    return _day_window(date(anchor.year, first_month, 1), date(anchor.year, last_month, last_day))

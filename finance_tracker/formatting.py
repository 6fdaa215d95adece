"""Formatting utilities for currency and date display."""

from __future__ import annotations

from datetime import date
from typing import Union

from .config import CURRENCY_SYMBOL
from .models import coerce_date, parse_month_key


def _group_indian(digits: str) -> str:
    """Insert separators the Indian way: last three digits, then pairs."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups + [tail])


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount with proper formatting.

    Args:
        amount: The amount to format
        include_sign: Whether to include the currency sign

    Returns:
        Formatted currency string (e.g., "₹1,23,456.50" or "1,23,456.50")

    Example:
        >>> format_currency(123456.5)
        '₹1,23,456.50'
        >>> format_currency(-200)
        '-₹200.00'
    """
    whole, fraction = f"{abs(amount):.2f}".split('.')
    text = f"{_group_indian(whole)}.{fraction}"
    if include_sign:
        text = f"{CURRENCY_SYMBOL}{text}"
    return f"-{text}" if amount < 0 else text


def format_date(value: Union[str, date]) -> str:
    """Render a calendar date as ``Jan 05, 2024``."""
    return coerce_date(value).strftime('%b %d, %Y')


def month_label(key: str) -> str:
    """Render a ``YYYY-MM`` key as ``Jan 2024``."""
    year, month = parse_month_key(key)
    return date(year, month, 1).strftime('%b %Y')

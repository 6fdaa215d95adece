"""Configuration management for the finance tracker.

This module centralizes all configuration values including paths,
reporting timezone, thresholds and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from datetime import date, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Optional, Union

# Project root, one level above the package directory
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("FINTRACK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("FINTRACK_DB_PATH", DATA_DIR / "finance_tracker.db")
).resolve()

# Reporting timezone, expressed as minutes east of UTC (IST by default)
DEFAULT_UTC_OFFSET_MINUTES = 330

# Windows and rankings
ALL_TIME_START = date(2000, 1, 1)
TOP_EXPENSES_LIMIT = 5
CATEGORY_RANKING_LIMIT = 7
DEFAULT_PAGE_SIZE = 20

# Budget thresholds (percent of the monthly limit)
NEAR_LIMIT_PERCENT = 80.0
OVER_BUDGET_PERCENT = 100.0

SEARCH_DEBOUNCE_SECONDS = 0.3

CURRENCY_SYMBOL = "₹"

UNCATEGORIZED_LABEL = "Uncategorized"
OTHERS_LABEL = "Others"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def utc_offset_minutes() -> int:
    """Read the reporting offset, falling back to the default on bad input."""
    raw = os.getenv("FINTRACK_UTC_OFFSET_MINUTES")
    if raw is None or not raw.strip():
        return DEFAULT_UTC_OFFSET_MINUTES
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Ignoring invalid FINTRACK_UTC_OFFSET_MINUTES=%r", raw
        )
        return DEFAULT_UTC_OFFSET_MINUTES


def reporting_timezone() -> tzinfo:
    """Get the fixed-offset timezone every report is anchored to."""
    minutes = utc_offset_minutes()
    return timezone(timedelta(minutes=minutes))


def ensure_data_directories() -> None:
    """Create the data directory and the database parent directory."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Configure root logging for scripts and interactive sessions.

    Args:
        level: Logging level name or number. Defaults to ``FINTRACK_LOG_LEVEL``
            or ``INFO`` when the variable is unset.
    """
    if level is None:
        level = os.getenv("FINTRACK_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)

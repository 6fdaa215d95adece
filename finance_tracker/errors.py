"""Error types raised by the finance tracker."""

from __future__ import annotations


class FinanceTrackerError(Exception):
    """Base class for every error the package raises on purpose."""


class InvalidArgument(FinanceTrackerError, ValueError):
    """A caller supplied a malformed value (bad preset, amount, month, field).

    Raised before any store call, so nothing is ever partially applied.
    """


class DataUnavailable(FinanceTrackerError):
    """The transaction or budget store could not be reached or failed.

    Callers should treat this as "data unavailable", never as a validation
    signal, and must not aggregate a partially received dataset.
    """


class NotFound(FinanceTrackerError, LookupError):
    """A record addressed by id does not exist."""

"""Debounced search-as-you-type."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .config import SEARCH_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


class SearchDebouncer:
    """Run ``callback`` with the latest text once typing pauses.

    There is at most one pending timer.  Every :meth:`submit` cancels it and
    starts a fresh one, so only a timer that runs out uninterrupted fires.
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        delay: float = SEARCH_DEBOUNCE_SECONDS,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.callback = callback
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[str] = None
        self._generation = 0

    @property
    def pending(self) -> Optional[str]:
        with self._lock:
            return self._pending

    def submit(self, text: str) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = text
            self._generation += 1
            timer = self._timer_factory(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # Superseded timers that were already running when cancelled.
            if generation != self._generation or self._timer is None:
                return
            text = self._pending
            self._timer = None
            self._pending = None
        logger.debug("Running debounced search for %r", text)
        self.callback(text)

    def flush(self) -> bool:
        """Run the pending search now. Returns False when nothing was pending."""
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            text = self._pending
            self._timer = None
            self._pending = None
        self.callback(text)
        return True

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None

"""
Live refresh: periodic re-search while enabled.

`LiveRefresh` runs one background thread that calls `tick()` every `interval_seconds`.
Guarantees:
- at most one search is outstanding; a tick that would overlap is skipped
- after `stop()` no further tick fires
- a search already in flight when `stop()` is called completes, and its result is
  discarded instead of delivered, even if refresh was started again meanwhile
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LiveRefresh(Generic[T]):
    def __init__(
        self,
        search: Callable[[], T],
        on_result: Callable[[T], None],
        *,
        interval_seconds: float = 3.0,
        on_error: Callable[[Exception], None] | None = None,
    ):
        if float(interval_seconds) <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._search = search
        self._on_result = on_result
        self._on_error = on_error
        self._interval = float(interval_seconds)
        self._in_flight = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start(self) -> None:
        """Enable refresh and start the timer thread (no-op if already running)."""
        with self._state_lock:
            if self._enabled:
                return
            self._enabled = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run, args=(self._stop_event,), name="nearby-live-refresh", daemon=True
            )
            self._thread.start()

    def stop(self, *, wait: bool = False) -> None:
        """Disable refresh; optionally join the timer thread."""
        with self._state_lock:
            self._enabled = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval):
            self.tick()

    def tick(self) -> bool:
        """Run one search unless disabled or one is already in flight.

        Returns True when a search ran.
        """
        with self._state_lock:
            if not self._enabled:
                return False
            session = self._stop_event
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Live refresh tick skipped: search still in flight")
            return False
        try:
            try:
                result = self._search()
            except Exception as e:
                logger.warning("Live refresh search failed: %s", e)
                if self._on_error is not None and not session.is_set():
                    self._on_error(e)
                return True
        finally:
            self._in_flight.release()

        # A stop (or stop + start) while searching retires this session.
        if not session.is_set():
            self._on_result(result)
        else:
            logger.debug("Live refresh session ended while searching; result discarded")
        return True

"""
Deferred task scheduling for session expiry and delayed notifications.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> Any:
        ...

    def shutdown(self) -> None:
        ...


class TimerScheduler:
    """
    Runs each task on its own daemon `threading.Timer`.

    Tasks fire no earlier than `delay` seconds after scheduling. Callers must
    re-check any state they depend on when the task runs.
    """

    def __init__(self):
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def call_later(
        self, delay: float, fn: Callable[..., Any], *args: Any
    ) -> threading.Timer:
        def run():
            try:
                fn(*args)
            except Exception:
                logger.exception("Deferred task %s failed", getattr(fn, "__name__", fn))
            finally:
                with self._lock:
                    self._timers.discard(timer)

        timer = threading.Timer(delay, run)
        timer.daemon = True
        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler has been shut down")
            self._timers.add(timer)
        timer.start()
        return timer

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def shutdown(self) -> None:
        """Cancels every outstanding task."""
        with self._lock:
            self._closed = True
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()

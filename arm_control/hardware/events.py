"""Minimal observer lists for lifecycle and telemetry notifications.

Subscribers are called in subscription order.  A subscriber that raises is
logged and skipped; the remaining subscribers are still called and the
emitter never sees the exception.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class Event:
    """Named, thread-safe subscription list.

    Examples
    --------
    >>> on_connected = Event("connected")
    >>> unsubscribe = on_connected.subscribe(lambda: print("up"))
    >>> on_connected.emit()
    up
    >>> unsubscribe()
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._subscribers: list[Callback] = []

    def subscribe(self, callback: Callback) -> Callable[[], None]:
        """Register *callback*.  Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callback) -> None:
        """Remove *callback*.  Unknown callbacks are ignored."""
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def emit(self, *args: Any) -> int:
        """Call every subscriber with *args*.

        Returns
        -------
        int
            Number of subscribers that raised.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        failures = 0
        for callback in subscribers:
            try:
                callback(*args)
            except Exception:  # noqa: BLE001
                failures += 1
                logger.exception("Subscriber of '%s' event raised", self.name)
        return failures

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

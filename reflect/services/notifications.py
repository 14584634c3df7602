"""
reflect.services.notifications — Notification Delivery
=========================================================

Concrete :class:`~reflect.engine.events.Notifier` implementations.

* :class:`LoggingNotifier` — writes each notification to the log.
* :class:`NotificationCenter` — thread-safe ring buffer the presentation
  layer polls (``drain()``) or subscribes to, so toasts and celebrations
  can be rendered by whatever UI sits on top.

No persistence — notifications are lost on restart.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable

from reflect.engine.events import Notification, NotificationKind

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 200


class LoggingNotifier:
    """Log notifications; error-ish kinds at WARNING, the rest at INFO."""

    def __init__(self, name: str = "reflect.notifications") -> None:
        self._log = logging.getLogger(name)

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.is_error else logging.INFO
        self._log.log(
            level, "[%s] %s%s",
            notification.kind.value,
            notification.title,
            f" — {notification.description}" if notification.description else "",
        )


class NotificationCenter:
    """Thread-safe ring buffer backed by :class:`collections.deque`.

    Usage:
        center = NotificationCenter()
        center.subscribe(show_toast)
        ...
        pending = center.drain()
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, *, forward_to_log: bool = True) -> None:
        self._items: deque[Notification] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[Notification], None]] = []
        self._log = LoggingNotifier() if forward_to_log else None

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self._items.append(notification)
            subscribers = list(self._subscribers)
        if self._log is not None:
            self._log.notify(notification)
        for callback in subscribers:
            try:
                callback(notification)
            except Exception:
                logger.exception("Notification subscriber failed")

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def recent(self, kind: NotificationKind | None = None) -> list[Notification]:
        """Buffered notifications, oldest first, optionally of one *kind*."""
        with self._lock:
            items = list(self._items)
        if kind is None:
            return items
        return [n for n in items if n.kind is kind]

    def drain(self) -> list[Notification]:
        """Return and clear everything buffered so far."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

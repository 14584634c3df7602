"""
reflect.engine.cache — Reactive Snapshot Cache
================================================

The single shared slot every reader observes.  Only the
:class:`~reflect.services.sync_service.SyncCoordinator` writes to it.

Each write bumps a monotonically increasing *version*.  A rollback is a
conditional write (:meth:`SnapshotCache.restore`) that only lands if no
newer snapshot was written since the one being undone.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from reflect.engine.snapshot import Snapshot

logger = logging.getLogger(__name__)

Subscriber = Callable[[Snapshot], None]


class SnapshotCache:
    """Thread-safe single-slot cache with change subscribers.

    Usage:
        cache = SnapshotCache()
        unsubscribe = cache.subscribe(lambda snap: render(snap))
        version = cache.set(snapshot)
        cache.restore(previous, expected_version=version)
    """

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot | None = initial
        self._version = 0
        self._subscribers: list[Subscriber] = []

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self) -> Snapshot | None:
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def set(self, snapshot: Snapshot) -> int:
        """Replace the cached snapshot and return the new version."""
        with self._lock:
            self._snapshot = snapshot
            self._version += 1
            version = self._version
        self._publish(snapshot)
        return version

    def restore(self, snapshot: Snapshot, *, expected_version: int) -> bool:
        """Write *snapshot* back only if the cache is still at *expected_version*.

        Returns False (and leaves the cache alone) when a newer write
        happened in between.
        """
        with self._lock:
            if self._version != expected_version:
                logger.warning(
                    "Skipping stale restore (cache at v%d, expected v%d)",
                    self._version, expected_version,
                )
                return False
            self._snapshot = snapshot
            self._version += 1
        self._publish(snapshot)
        return True

    # -------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call *callback* after every write.  Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def _publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")

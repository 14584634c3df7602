"""
tests/test_cache.py — SnapshotCache Unit Tests
================================================

Version stamping, guarded restores and subscriber fan-out.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from reflect.engine.cache import SnapshotCache
from reflect.engine.snapshot import Snapshot, UserProfile


def _snap(xp: int) -> Snapshot:
    return Snapshot(user=UserProfile(xp=xp))


class TestVersioning:
    def test_starts_empty(self):
        cache = SnapshotCache()
        assert cache.get() is None
        assert cache.version == 0

    def test_set_bumps_version(self):
        cache = SnapshotCache()
        assert cache.set(_snap(1)) == 1
        assert cache.set(_snap(2)) == 2
        assert cache.get().user.xp == 2

    def test_restore_at_expected_version(self):
        cache = SnapshotCache(_snap(0))
        v = cache.set(_snap(10))
        assert cache.restore(_snap(0), expected_version=v) is True
        assert cache.get().user.xp == 0

    def test_stale_restore_is_skipped(self):
        cache = SnapshotCache(_snap(0))
        v1 = cache.set(_snap(10))
        cache.set(_snap(20))
        assert cache.restore(_snap(0), expected_version=v1) is False
        assert cache.get().user.xp == 20


class TestSubscribers:
    def test_subscriber_sees_every_write(self):
        cache = SnapshotCache()
        seen = []
        cache.subscribe(lambda s: seen.append(s.user.xp))
        v = cache.set(_snap(5))
        cache.restore(_snap(1), expected_version=v)
        assert seen == [5, 1]

    def test_unsubscribe(self):
        cache = SnapshotCache()
        callback = MagicMock()
        unsubscribe = cache.subscribe(callback)
        unsubscribe()
        cache.set(_snap(5))
        callback.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self):
        cache = SnapshotCache()
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock()
        cache.subscribe(bad)
        cache.subscribe(good)
        cache.set(_snap(5))
        good.assert_called_once()
        assert cache.get().user.xp == 5

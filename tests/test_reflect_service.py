"""
tests/test_reflect_service.py — Update Pipeline Tests
=======================================================

End to end: action → achievement check → optimistic commit → SQL store.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime
from unittest.mock import MagicMock

import pytest

from reflect.engine import actions
from reflect.engine.cache import SnapshotCache
from reflect.engine.events import NotificationKind
from reflect.engine.snapshot import AppConfig, HabitConfig, Snapshot
from reflect.services.reflect_service import ReflectService
from reflect.services.store import PersistenceError, SqlRemoteStore
from reflect.services.sync_service import SyncCoordinator, SyncState

USER = "u-1"
TODAY = date(2024, 1, 10)
DAY = "2024-01-10"
NOW = datetime(2024, 1, 10, 21, 0, tzinfo=UTC)


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop, closing it afterwards."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _seed(store: SqlRemoteStore) -> None:
    snap = Snapshot(config=AppConfig(habits=(HabitConfig(id="h1", name="Leer", attribute="INT"),)))
    store.write_profile(USER, snap.user)
    store.write_slices(USER, snap, ["document"])


@pytest.fixture
def store(db_engine) -> SqlRemoteStore:
    s = SqlRemoteStore(db_engine)
    _seed(s)
    return s


def _service(store, notifier=None) -> ReflectService:
    coordinator = SyncCoordinator(store, SnapshotCache(), USER, notifier=notifier)
    return ReflectService(coordinator)


class TestUpdate:
    def test_action_is_scored_checked_and_persisted(self, store, notifier):
        async def _inner():
            service = _service(store, notifier)
            await service.load()
            batch = service.update(
                lambda s: actions.toggle_habit(s, DAY, "Leer", now=NOW),
                day=DAY, today=TODAY, now=NOW,
            )
            await service.close()
            return service, batch

        service, batch = run_async(_inner())
        assert batch.state is SyncState.COMMITTED
        assert "first_step" in batch.proposed.achievements
        stored = store.read(USER)
        assert stored.user.xp == 20
        assert stored.entries[DAY].habits == {"Leer": True}
        assert stored.achievements == {"first_step": NOW.isoformat()}
        assert NotificationKind.ACHIEVEMENT in notifier.kinds()
        assert service.snapshot.user.xp == 20

    def test_noop_transition_commits_nothing(self, store):
        async def _inner():
            service = _service(store)
            await service.load()
            return service.update(lambda s: s, today=TODAY)

        assert run_async(_inner()) is None

    def test_update_before_load_fails(self, store):
        service = _service(store)
        with pytest.raises(RuntimeError):
            service.update(lambda s: s)

    def test_failed_write_reverts_view(self, notifier):
        store = MagicMock()
        store.read.return_value = Snapshot()
        store.write_profile.side_effect = PersistenceError("down")

        async def _inner():
            service = _service(store, notifier)
            before = await service.load()
            service.update(lambda s: actions.toggle_day_completed(s, DAY, now=NOW), today=TODAY)
            await service.close()
            return service, before

        service, before = run_async(_inner())
        assert service.snapshot is before
        assert len(notifier.of(NotificationKind.SYNC_ERROR)) == 1

    def test_replace_document_normalizes(self, store):
        doc = {"entries": {"inbox": {"tasks": {"Comprar pan": True}}}, "user": {"xp": 50}}

        async def _inner():
            service = _service(store)
            await service.load()
            batch = service.replace_document(doc)
            await service.close()
            return batch

        batch = run_async(_inner())
        assert batch.state is SyncState.COMMITTED
        task = store.read(USER).entries["inbox"].tasks["Comprar pan"]
        assert task.completed is True

    def test_replace_document_keeps_existing_unlocks(self, store):
        stamp = "2024-01-05T00:00:00"
        store.write_slices(USER, Snapshot(achievements={"first_step": stamp}), ["achievements"])
        doc = {
            "config": {"habits": [{"id": "h1", "name": "Leer", "attribute": "INT"}]},
            "entries": {},
            "achievements": {},
        }
        later = datetime(2030, 1, 1, tzinfo=UTC)

        async def _inner():
            service = _service(store)
            await service.load()
            service.replace_document(doc)
            replaced = service.snapshot.achievements
            service.update(
                lambda s: actions.toggle_habit(s, DAY, "Leer", now=later),
                day=DAY, today=TODAY, now=later,
            )
            await service.close()
            return replaced, service.snapshot.achievements

        replaced, updated = run_async(_inner())
        assert replaced == {"first_step": stamp}
        assert updated["first_step"] == stamp
        assert store.read(USER).achievements["first_step"] == stamp


class TestSummary:
    def test_summary_projection(self, store):
        async def _inner():
            service = _service(store)
            await service.load()
            service.update(lambda s: actions.toggle_habit(s, DAY, "Leer", now=NOW), today=TODAY, now=NOW)
            await service.close()
            return service.summary(TODAY)

        summary = run_async(_inner())
        assert summary["xp"] == 20
        assert summary["level"] == 1
        assert summary["streak"] == 1
        assert summary["daily_score"] == 80
        assert summary["level_progress"] == 20
        assert summary["achievements"] == 1

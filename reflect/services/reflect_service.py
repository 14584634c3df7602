"""
reflect.services.reflect_service — Update Pipeline
====================================================

The one entry point for changing state.  Every user action flows through
:meth:`ReflectService.update`::

    previous = cache.get()
    proposed = action(previous)                 # engine transition
    proposed = check_achievements(proposed)     # may stamp unlocks
    coordinator.commit(previous, proposed)      # optimistic + remote

Callers never write to the cache or the store directly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from reflect.engine.achievements import check_achievements
from reflect.engine.consistency import DEFAULT_RULES, MetricRules, current_streak, daily_score
from reflect.engine.events import Notifier
from reflect.engine.ledger import level_progress
from reflect.engine.migration import load_snapshot
from reflect.engine.quests import quest_progress
from reflect.engine.snapshot import Snapshot, date_key
from reflect.services.sync_service import SyncBatch, SyncCoordinator

logger = logging.getLogger(__name__)

Transition = Callable[[Snapshot], Snapshot]


class ReflectService:
    """Wires the engine to the cache and the sync coordinator.

    Usage::

        service = ReflectService(coordinator, rules=MetricRules.from_config(cfg))
        await service.load()
        service.update(lambda s: actions.toggle_habit(s, "2025-03-10", "Leer"))
        await service.flush()
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        *,
        rules: MetricRules = DEFAULT_RULES,
        notifier: Notifier | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.rules = rules
        self.notifier = notifier if notifier is not None else coordinator.notifier

    @property
    def snapshot(self) -> Snapshot:
        current = self.coordinator.cache.get()
        if current is None:
            raise RuntimeError("Snapshot not loaded; call load() first")
        return current

    async def load(self) -> Snapshot:
        """Fetch the remote snapshot into the cache."""
        snapshot = await self.coordinator.refresh()
        logger.info(
            "Loaded snapshot for %s: lvl %d, %d entries",
            self.coordinator.user_id, snapshot.user.level, len(snapshot.entries),
        )
        return snapshot

    def update(
        self,
        transition: Transition,
        *,
        day: str | None = None,
        today: date | None = None,
        now: datetime | None = None,
    ) -> SyncBatch | None:
        """Apply *transition*, re-check achievements for *day*, commit.

        Returns ``None`` when the transition changed nothing.
        """
        previous = self.snapshot
        proposed = transition(previous)
        if proposed is previous or proposed == previous:
            return None

        today = today or date.today()
        proposed, unlocked = check_achievements(
            proposed,
            day or date_key(today),
            today=today,
            now=now,
            rules=self.rules,
            notifier=self.notifier,
        )
        if unlocked:
            logger.info("Unlocked %s", ", ".join(unlocked))
        return self.coordinator.commit(previous, proposed)

    def replace_document(self, document: dict[str, Any]) -> SyncBatch:
        """Commit a whole raw document (legacy shapes are normalized).

        Unlock records are append-only: ids already held keep their stamp
        even when the incoming document drops or restamps them.
        """
        previous = self.snapshot
        proposed = load_snapshot(document)
        proposed = replace(
            proposed, achievements={**proposed.achievements, **previous.achievements},
        )
        return self.coordinator.commit(previous, proposed)

    async def flush(self) -> None:
        await self.coordinator.flush()

    async def close(self) -> None:
        await self.coordinator.close()

    # -------------------------------------------------------------------
    # Read-side projections
    # -------------------------------------------------------------------
    def summary(self, today: date | None = None) -> dict[str, Any]:
        """Dashboard numbers derived from the current snapshot."""
        snap = self.snapshot
        today = today or date.today()
        return {
            "level": snap.user.level,
            "xp": snap.user.xp,
            "gold": snap.user.gold,
            "level_progress": level_progress(snap.user),
            "streak": current_streak(snap.entries, snap.config, today=today),
            "daily_score": daily_score(snap.entries.get(date_key(today)), snap.config, self.rules),
            "quests": {q.id: quest_progress(snap.entries, q.id) for q in snap.quests},
            "achievements": len(snap.achievements),
        }

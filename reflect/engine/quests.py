"""
reflect.engine.quests — Quest Rewards & Derived Progress
==========================================================

A quest's rewards are fixed by its difficulty.  Its progress is never
stored: it is the share of tasks (across every entry) whose ``quest_id``
points at the quest and that are completed.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime

from reflect.constants import QUEST_REWARDS, QUEST_TASK_XP, QuestDifficulty, QuestStatus
from reflect.engine.events import Notification, NotificationKind, Notifier, emit
from reflect.engine.ledger import add_gold, apply_scoring_event
from reflect.engine.snapshot import Entry, Quest, Snapshot, Task

logger = logging.getLogger(__name__)


def quest_tasks(entries: Mapping[str, Entry], quest_id: str) -> list[tuple[str, str, Task]]:
    """All ``(date_key, task_id, task)`` linked to *quest_id*."""
    return [
        (key, task_id, task)
        for key, entry in entries.items()
        for task_id, task in entry.tasks.items()
        if task.quest_id == quest_id
    ]


def quest_progress(entries: Mapping[str, Entry], quest_id: str) -> int:
    """Completed share of linked tasks, as a rounded percentage (0 with no tasks)."""
    tasks = quest_tasks(entries, quest_id)
    if not tasks:
        return 0
    done = sum(1 for _key, _tid, task in tasks if task.completed)
    return math.floor(done / len(tasks) * 100 + 0.5)


def get_quest(snapshot: Snapshot, quest_id: str) -> Quest | None:
    return next((q for q in snapshot.quests if q.id == quest_id), None)


def _replace_quest(snapshot: Snapshot, quest: Quest) -> Snapshot:
    return replace(
        snapshot,
        quests=tuple(quest if q.id == quest.id else q for q in snapshot.quests),
    )


def create_quest(
    snapshot: Snapshot,
    title: str,
    difficulty: QuestDifficulty | str = QuestDifficulty.COMMON,
    *,
    description: str = "",
    attribute: str | None = None,
    deadline: str | None = None,
    quest_id: str | None = None,
    now: datetime | None = None,
) -> tuple[Snapshot, Quest]:
    title = title.strip()
    if not title:
        raise ValueError("Quest title must not be empty")

    difficulty = QuestDifficulty(difficulty)
    xp_reward, gold_reward = QUEST_REWARDS[difficulty]
    quest = Quest(
        id=quest_id or str(uuid.uuid4()),
        title=title,
        difficulty=difficulty,
        status=QuestStatus.ACTIVE,
        xp_reward=xp_reward,
        gold_reward=gold_reward,
        description=description.strip(),
        attribute=attribute,
        deadline=deadline or None,
        created_at=(now or datetime.now(UTC)).isoformat(),
    )
    return replace(snapshot, quests=snapshot.quests + (quest,)), quest


def complete_quest(
    snapshot: Snapshot,
    quest_id: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> tuple[bool, Snapshot]:
    """Mark an active quest completed and pay its rewards.

    A quest with linked tasks can only be completed at 100 % progress; a
    quest without tasks can be completed at any time.
    Returns ``(False, snapshot)`` unchanged when not allowed.
    """
    quest = get_quest(snapshot, quest_id)
    if quest is None or quest.status is not QuestStatus.ACTIVE:
        return False, snapshot

    if quest_tasks(snapshot.entries, quest_id) and quest_progress(snapshot.entries, quest_id) < 100:
        emit(notifier, Notification(
            NotificationKind.QUEST,
            "Completa todas las tareas vinculadas primero",
            metadata={"quest_id": quest_id},
        ))
        return False, snapshot

    now = now or datetime.now(UTC)
    updated = _replace_quest(
        snapshot,
        replace(quest, status=QuestStatus.COMPLETED, completed_at=now.isoformat()),
    )
    reason = f"Misión completada: {quest.title}"
    user = apply_scoring_event(
        updated.user, quest.xp_reward, reason, quest.attribute, notifier=notifier, now=now,
    )
    user = add_gold(user, quest.gold_reward)
    logger.info("Quest completed: %s (+%d xp, +%d gold)", quest.title, quest.xp_reward, quest.gold_reward)
    emit(notifier, Notification(
        NotificationKind.QUEST,
        f"🏆 ¡Misión completada! +{quest.xp_reward} XP +{quest.gold_reward} Oro",
        metadata={"quest_id": quest_id},
    ))
    return True, updated.with_user(user)


def archive_quest(snapshot: Snapshot, quest_id: str) -> Snapshot:
    quest = get_quest(snapshot, quest_id)
    if quest is None:
        return snapshot
    return _replace_quest(snapshot, replace(quest, status=QuestStatus.ARCHIVED))


def update_documentation(snapshot: Snapshot, quest_id: str, documentation: str) -> Snapshot:
    quest = get_quest(snapshot, quest_id)
    if quest is None:
        return snapshot
    return _replace_quest(snapshot, replace(quest, documentation=documentation))


def delete_quest(snapshot: Snapshot, quest_id: str) -> Snapshot:
    """Drop the quest.  Linked tasks keep their (now dangling) back-reference."""
    return replace(snapshot, quests=tuple(q for q in snapshot.quests if q.id != quest_id))


def toggle_quest_task(
    snapshot: Snapshot,
    key: str,
    task_id: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Flip a quest-linked task.  Completing it pays 10 XP; reopening costs nothing."""
    entry = snapshot.entry(key)
    if entry is None or task_id not in entry.tasks:
        return snapshot
    task = replace(entry.tasks[task_id], completed=not entry.tasks[task_id].completed)
    updated = snapshot.with_entry(key, replace(entry, tasks={**entry.tasks, task_id: task}))
    if not task.completed:
        return updated
    user = apply_scoring_event(
        updated.user, QUEST_TASK_XP, f"Tarea de Misión: {task.name}", notifier=notifier, now=now,
    )
    return updated.with_user(user)

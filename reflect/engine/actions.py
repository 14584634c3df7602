"""
reflect.engine.actions — Snapshot Transitions for User Actions
================================================================

Every user action is a function ``(Snapshot, …) → Snapshot``.  Actions
that score (habit toggles, task toggles, closing a day, defeating a boss)
route the XP change through :func:`reflect.engine.ledger.apply_scoring_event`
so the economy invariants hold no matter where the XP came from.

Entries are created lazily on first write for a date.  Tasks without a date
live in the ``"inbox"`` entry.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from reflect.constants import (
    DAY_CLOSE_XP,
    HABIT_XP,
    INBOX_KEY,
    SHOP_ITEMS,
    TASK_XP,
)
from reflect.engine.events import Notification, NotificationKind, Notifier, emit
from reflect.engine.ledger import apply_scoring_event, spend_gold
from reflect.engine.snapshot import Boss, Entry, Review, Snapshot, Task

logger = logging.getLogger(__name__)


def _entry_for(snapshot: Snapshot, key: str) -> Entry:
    return snapshot.entry(key) or Entry()


def _score(
    snapshot: Snapshot,
    amount: int,
    reason: str,
    attribute: str | None,
    notifier: Notifier | None,
    now: datetime | None,
) -> Snapshot:
    user = apply_scoring_event(
        snapshot.user, amount, reason, attribute, notifier=notifier, now=now,
    )
    return snapshot.with_user(user)


# ---------------------------------------------------------------------------
# Habits, metrics, review
# ---------------------------------------------------------------------------
def toggle_habit(
    snapshot: Snapshot,
    key: str,
    habit_name: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Flip *habit_name* for day *key*; ±20 XP on the habit's attribute."""
    entry = _entry_for(snapshot, key)
    done = not entry.habits.get(habit_name, False)
    entry = replace(entry, habits={**entry.habits, habit_name: done})
    updated = snapshot.with_entry(key, entry)

    habit = snapshot.config.habit(habit_name)
    attribute = habit.attribute if habit else None
    if done:
        return _score(updated, HABIT_XP, f"Hábito: {habit_name}", attribute, notifier, now)
    return _score(updated, -HABIT_XP, f"Hábito cancelado: {habit_name}", attribute, notifier, now)


def set_metric(snapshot: Snapshot, key: str, metric: str, value: float) -> Snapshot:
    entry = _entry_for(snapshot, key)
    return snapshot.with_entry(key, replace(entry, metrics={**entry.metrics, metric: value}))


def set_review(
    snapshot: Snapshot,
    key: str,
    *,
    win: str | None = None,
    fail: str | None = None,
    fix: str | None = None,
) -> Snapshot:
    """Update the given review fields; ``None`` leaves a field as it was."""
    entry = _entry_for(snapshot, key)
    review = Review(
        win=entry.review.win if win is None else win,
        fail=entry.review.fail if fail is None else fail,
        fix=entry.review.fix if fix is None else fix,
    )
    return snapshot.with_entry(key, replace(entry, review=review))


def toggle_day_completed(
    snapshot: Snapshot,
    key: str,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Close (+100 XP) or reopen (-100 XP) day *key*."""
    entry = _entry_for(snapshot, key)
    entry = replace(entry, completed=not entry.completed)
    updated = snapshot.with_entry(key, entry)
    if entry.completed:
        return _score(updated, DAY_CLOSE_XP, "Día Completado", None, notifier, now)
    return _score(updated, -DAY_CLOSE_XP, "Día reabierto", None, notifier, now)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
def add_task(
    snapshot: Snapshot,
    name: str,
    key: str = INBOX_KEY,
    *,
    quest_id: str | None = None,
    task_id: str | None = None,
    now: datetime | None = None,
) -> tuple[Snapshot, str]:
    """Add a task to day *key* (the inbox by default).  Returns the new task id."""
    name = name.strip()
    if not name:
        raise ValueError("Task name must not be empty")

    task_id = task_id or str(uuid.uuid4())
    task = Task(
        name=name,
        completed=False,
        quest_id=quest_id,
        created_at=(now or datetime.now(UTC)).isoformat(),
    )
    entry = _entry_for(snapshot, key)
    entry = replace(entry, tasks={**entry.tasks, task_id: task})
    return snapshot.with_entry(key, entry), task_id


def toggle_task(
    snapshot: Snapshot,
    key: str,
    task_id: str,
    *,
    xp: int = TASK_XP,
    label: str = "Tarea",
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Flip a task's completion; ±*xp* (10 from the day view, 15 from the planner)."""
    entry = snapshot.entry(key)
    if entry is None or task_id not in entry.tasks:
        return snapshot

    task = entry.tasks[task_id]
    task = replace(task, completed=not task.completed)
    updated = snapshot.with_entry(key, replace(entry, tasks={**entry.tasks, task_id: task}))
    if task.completed:
        return _score(updated, xp, f"{label}: {task.name}", None, notifier, now)
    return _score(updated, -xp, f"{label} cancelada: {task.name}", None, notifier, now)


def delete_task(snapshot: Snapshot, key: str, task_id: str) -> Snapshot:
    entry = snapshot.entry(key)
    if entry is None or task_id not in entry.tasks:
        return snapshot
    tasks = {tid: t for tid, t in entry.tasks.items() if tid != task_id}
    return snapshot.with_entry(key, replace(entry, tasks=tasks))


def move_task(snapshot: Snapshot, from_key: str, to_key: str, task_id: str) -> Snapshot:
    """Move a task to another day, reopening it."""
    source = snapshot.entry(from_key)
    if source is None or task_id not in source.tasks or from_key == to_key:
        return snapshot
    task = replace(source.tasks[task_id], completed=False)
    updated = delete_task(snapshot, from_key, task_id)
    target = _entry_for(updated, to_key)
    return updated.with_entry(to_key, replace(target, tasks={**target.tasks, task_id: task}))


def rollover_tasks(snapshot: Snapshot, from_key: str, to_key: str) -> Snapshot:
    """Copy *from_key*'s unfinished tasks into *to_key* (ids already there are kept)."""
    source = snapshot.entry(from_key)
    if source is None:
        return snapshot
    target = _entry_for(snapshot, to_key)
    tasks = dict(target.tasks)
    for task_id, task in source.tasks.items():
        if not task.completed and task_id not in tasks:
            tasks[task_id] = replace(task, completed=False)
    return snapshot.with_entry(to_key, replace(target, tasks=tasks))


# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------
def buy_item(
    snapshot: Snapshot,
    item_id: str,
    *,
    notifier: Notifier | None = None,
) -> tuple[bool, Snapshot]:
    """Buy a built-in item once.  Fails when owned, unknown, or unaffordable."""
    item = SHOP_ITEMS.get(item_id)
    if item is None:
        logger.warning("Unknown shop item: %s", item_id)
        return False, snapshot
    if item_id in snapshot.user.inventory:
        return False, snapshot

    name, cost = item
    ok, user = spend_gold(snapshot.user, cost, notifier=notifier)
    if not ok:
        return False, snapshot
    user = replace(user, inventory=user.inventory + (item_id,))
    emit(notifier, Notification(NotificationKind.PURCHASE, f"¡Has comprado: {name}!"))
    return True, snapshot.with_user(user)


def redeem_reward(
    snapshot: Snapshot,
    reward_id: str,
    *,
    notifier: Notifier | None = None,
) -> tuple[bool, Snapshot]:
    """Spend gold on one of the user's own rewards (repeatable)."""
    reward = next((r for r in snapshot.config.rewards if r.id == reward_id), None)
    if reward is None:
        return False, snapshot
    ok, user = spend_gold(snapshot.user, reward.cost, notifier=notifier)
    if not ok:
        return False, snapshot
    emit(notifier, Notification(
        NotificationKind.PURCHASE, f"¡Disfruta tu recompensa: {reward.name}! 🎉",
    ))
    return True, snapshot.with_user(user)


# ---------------------------------------------------------------------------
# Bosses
# ---------------------------------------------------------------------------
def attack_boss(
    snapshot: Snapshot,
    boss_id: str,
    damage: int,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> Snapshot:
    """Deal *damage*; a boss at 0 HP is removed and pays its XP reward."""
    boss: Boss | None = next((b for b in snapshot.bosses if b.id == boss_id), None)
    if boss is None:
        return snapshot

    hp = max(0, boss.current_hp - max(0, damage))
    if hp > 0:
        bosses = tuple(replace(b, current_hp=hp) if b.id == boss_id else b for b in snapshot.bosses)
        return replace(snapshot, bosses=bosses)

    remaining = tuple(b for b in snapshot.bosses if b.id != boss_id)
    logger.info("Boss defeated: %s (+%d xp)", boss.name, boss.xp_reward)
    return _score(
        replace(snapshot, bosses=remaining),
        boss.xp_reward,
        f"Misión Completada: {boss.name}",
        boss.damage_type,
        notifier,
        now,
    )

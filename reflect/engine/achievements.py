"""
reflect.engine.achievements — Achievement Check Pipeline
==========================================================

A fixed, ordered catalog of achievements.  Each one carries a pure
predicate that receives an :class:`AchievementContext` (the snapshot, the
day being edited and "today") and answers whether it is satisfied.

Unlocks are one-way: once an id is stamped into ``snapshot.achievements``
it is never checked or re-stamped again.

Streak walks differ on purpose per family:
  * generic / named-habit / journaling walks skip a failing *today* and
    stop at the first earlier failing day;
  * metric and all-habit walks have no such exemption — the first day
    that is missing, open, or failing ends the walk.

This module is pure calculation — no storage I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta

from reflect.engine.consistency import DEFAULT_RULES, MetricRules, current_streak
from reflect.engine.events import Notification, NotificationKind, Notifier, emit
from reflect.engine.snapshot import Entry, Snapshot
from reflect.engine.snapshot import date_key as key_for

logger = logging.getLogger(__name__)

__all__ = [
    "ACHIEVEMENTS",
    "Achievement",
    "AchievementContext",
    "check_achievements",
    "get_achievement",
]

WALK_WINDOW_DAYS = 30
EARLY_BIRD_HABIT = "Madrugar"


# ---------------------------------------------------------------------------
# Achievement Context — passed to every predicate
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Immutable view of the history a predicate is evaluated against.

    Parameters
    ----------
    snapshot : the proposed full state.
    date_key : the day the user is looking at (``YYYY-MM-DD``).  Single-day
        predicates (no_fail, perfect_day, monk_mode) read this day.
    today : anchor for every backward streak walk.
    rules : metric names and goal fallbacks.
    """

    snapshot: Snapshot
    date_key: str
    today: date
    rules: MetricRules = DEFAULT_RULES

    @property
    def habit_names(self) -> list[str]:
        return self.snapshot.config.habit_names

    def day(self, offset: int) -> Entry | None:
        """Entry *offset* days before today."""
        return self.snapshot.entry(key_for(self.today - timedelta(days=offset)))

    def walk(self, window: int = WALK_WINDOW_DAYS) -> Iterator[tuple[int, Entry | None]]:
        for offset in range(window):
            yield offset, self.day(offset)


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    title: str
    description: str
    icon: str
    condition: Callable[[AchievementContext], bool]


# ---------------------------------------------------------------------------
# Walk helpers
# ---------------------------------------------------------------------------
def _consecutive_habit(ctx: AchievementContext, habit: str, days: int) -> bool:
    consecutive = 0
    for offset, entry in ctx.walk():
        if entry is None:
            break
        if entry.habits.get(habit):
            consecutive += 1
        elif offset == 0:
            continue
        else:
            break
    return consecutive >= days


def _consecutive_metric(
    ctx: AchievementContext,
    metric: str,
    predicate: Callable[[float], bool],
    days: int,
) -> bool:
    consecutive = 0
    for _offset, entry in ctx.walk():
        if entry is None or not entry.completed or entry.metrics.get(metric) is None:
            break
        if predicate(entry.metrics[metric]):
            consecutive += 1
        else:
            break
    return consecutive >= days


def _consecutive_journaling(ctx: AchievementContext, days: int) -> bool:
    consecutive = 0
    for offset, entry in ctx.walk():
        if entry is None:
            break
        has_win = bool(entry.review.win) and len(entry.review.win) > 2
        has_fail = bool(entry.review.fail) and len(entry.review.fail) > 2
        if has_win or has_fail:
            consecutive += 1
        elif offset == 0:
            continue
        else:
            break
    return consecutive >= days


def _consecutive_all_habits(ctx: AchievementContext, days: int) -> bool:
    habits = ctx.habit_names
    consecutive = 0
    for _offset, entry in ctx.walk():
        if entry is None:
            break
        if habits and entry.all_done(habits):
            consecutive += 1
        else:
            break
    return consecutive >= days


# ---------------------------------------------------------------------------
# Predicates — pure functions ctx → bool
# ---------------------------------------------------------------------------
def _streak_at_least(days: int) -> Callable[[AchievementContext], bool]:
    def _check(ctx: AchievementContext) -> bool:
        streak = current_streak(ctx.snapshot.entries, ctx.snapshot.config, today=ctx.today)
        return streak >= days
    return _check


def _check_first_step(ctx: AchievementContext) -> bool:
    return len(ctx.snapshot.entries) >= 1


def _check_weekend_warrior(ctx: AchievementContext) -> bool:
    """A Saturday + Sunday pair within the last week with every habit done."""
    habits = ctx.habit_names
    for offset in range(7):
        day = ctx.today - timedelta(days=offset)
        if day.weekday() != 6:  # Sunday
            continue
        sunday = ctx.snapshot.entry(key_for(day))
        saturday = ctx.snapshot.entry(key_for(day - timedelta(days=1)))
        if sunday is None or saturday is None:
            continue
        if sunday.all_done(habits) and saturday.all_done(habits):
            return True
    return False


def _check_no_fail(ctx: AchievementContext) -> bool:
    entry = ctx.snapshot.entry(ctx.date_key)
    if entry is None or not entry.completed or entry.review.fail is None:
        return False
    fail = entry.review.fail
    return fail.strip() == "" or "ninguno" in fail.lower()


def _check_perfect_day(ctx: AchievementContext) -> bool:
    entry = ctx.snapshot.entry(ctx.date_key)
    if entry is None or not entry.completed:
        return False
    config = ctx.snapshot.config
    habits = ctx.habit_names
    sleep = entry.metrics.get(ctx.rules.sleep_metric) or 0
    phone = entry.metrics.get(ctx.rules.phone_metric)
    if phone is None:
        return False
    return (
        entry.done_count(habits) == len(habits)
        and sleep >= ctx.rules.sleep_goal(config)
        and phone <= ctx.rules.phone_limit(config)
    )


def _check_monk_mode(ctx: AchievementContext) -> bool:
    entry = ctx.snapshot.entry(ctx.date_key)
    if entry is None or not entry.completed:
        return False
    phone = entry.metrics.get(ctx.rules.phone_metric)
    return phone is not None and phone < 1.0


def _check_digital_detox(ctx: AchievementContext) -> bool:
    return _consecutive_metric(ctx, ctx.rules.phone_metric, lambda v: v < 2.0, 3)


def _check_sleep_master(ctx: AchievementContext) -> bool:
    goal = ctx.rules.sleep_goal(ctx.snapshot.config)
    return _consecutive_metric(ctx, ctx.rules.sleep_metric, lambda v: v >= goal, 3)


# ---------------------------------------------------------------------------
# Catalog — evaluation order is catalog order
# ---------------------------------------------------------------------------
ACHIEVEMENTS: tuple[Achievement, ...] = (
    # Streaks
    Achievement("streak_3", "Calentando Motores",
                "Mantén una racha de 3 días seguidos.", "🔥", _streak_at_least(3)),
    Achievement("streak_7", "Imparable",
                "Mantén una racha de 7 días seguidos.", "🚀", _streak_at_least(7)),
    Achievement("streak_14", "Hábito Formado",
                "Mantén una racha de 14 días seguidos.", "🏗️", _streak_at_least(14)),
    Achievement("streak_21", "Estilo de Vida",
                "Mantén una racha de 21 días seguidos.", "🧠", _streak_at_least(21)),
    Achievement("streak_30", "Guerrero Espartano",
                "Mantén una racha de 30 días seguidos.", "⚔️", _streak_at_least(30)),
    # Habits
    Achievement("first_step", "Primer Paso",
                "Completa tu primer registro diario.", "👣", _check_first_step),
    Achievement("early_bird_streak", "Club de las 5 AM",
                f"Completa '{EARLY_BIRD_HABIT}' durante 5 días seguidos.", "🌅",
                lambda ctx: _consecutive_habit(ctx, EARLY_BIRD_HABIT, 5)),
    Achievement("weekend_warrior", "Guerrero de Finde",
                "Completa todos los hábitos un Sábado y Domingo consecutivos.", "🎉",
                _check_weekend_warrior),
    Achievement("no_fail", "Sin Excusas",
                "Registra un día sin ningún 'Fallo' escrito.", "✅", _check_no_fail),
    # Metrics
    Achievement("perfect_day", "Día Perfecto",
                "Consigue un Score de 100 puntos en un día.", "💯", _check_perfect_day),
    Achievement("monk_mode", "Modo Monje",
                "Disciplina digital extrema: menos de 1h de móvil hoy.", "🧘",
                _check_monk_mode),
    Achievement("digital_detox", "Detox Digital",
                "Usa el móvil menos de 2h durante 3 días seguidos.", "📵",
                _check_digital_detox),
    Achievement("sleep_master", "Maestro del Sueño",
                "Duerme bien (+7.5h) durante 3 días seguidos.", "😴", _check_sleep_master),
    Achievement("iron_discipline", "Disciplina de Hierro",
                "Completa TODOS los hábitos durante 5 días seguidos.", "🛡️",
                lambda ctx: _consecutive_all_habits(ctx, 5)),
    Achievement("journaling_streak", "Escritor Constante",
                "Escribe tu review (victoria/fallo) durante 7 días seguidos.", "✍️",
                lambda ctx: _consecutive_journaling(ctx, 7)),
)

_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


def get_achievement(achievement_id: str) -> Achievement | None:
    return _BY_ID.get(achievement_id)


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_achievements(
    snapshot: Snapshot,
    date_key: str,
    *,
    today: date | None = None,
    now: datetime | None = None,
    rules: MetricRules = DEFAULT_RULES,
    notifier: Notifier | None = None,
) -> tuple[Snapshot, list[str]]:
    """Evaluate every still-locked achievement against *snapshot*.

    Parameters
    ----------
    snapshot : proposed state to evaluate.
    date_key : the day being edited.
    today : anchor for streak walks (defaults to the local date).
    now : unlock timestamp (defaults to UTC now).
    notifier : receives one celebratory notification per unlock.

    Returns
    -------
    ``(snapshot, newly_unlocked_ids)``.  The same snapshot object is
    returned when nothing unlocked.
    """
    ctx = AchievementContext(
        snapshot=snapshot,
        date_key=date_key,
        today=today or date.today(),
        rules=rules,
    )
    stamp = (now or datetime.now(UTC)).isoformat()
    unlocked = dict(snapshot.achievements)
    newly_earned: list[str] = []

    for achievement in ACHIEVEMENTS:
        # Skip if already earned
        if achievement.id in unlocked:
            continue
        if not achievement.condition(ctx):
            continue

        unlocked[achievement.id] = stamp
        newly_earned.append(achievement.id)
        logger.info("Achievement unlocked: %s (%s)", achievement.title, achievement.id)
        emit(notifier, Notification(
            NotificationKind.ACHIEVEMENT,
            f"¡Logro Desbloqueado: {achievement.title}!",
            achievement.description,
            celebrate=True,
            metadata={"achievement_id": achievement.id, "icon": achievement.icon},
        ))

    if not newly_earned:
        return snapshot, []
    return replace(snapshot, achievements=unlocked), newly_earned

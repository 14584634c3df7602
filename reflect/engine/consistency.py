"""
reflect.engine.consistency — Daily Score & Streak
===================================================

Rolling-window consistency metrics derived from the entry log.

Daily score (0–100):
  * habits      — up to 80, linear in done / configured
  * sleep       — 10 at or above the goal, 5 within 1.5 h below it
  * phone usage — 10 at or under the limit, 5 within 1.0 h over it;
                  only counted once the day is closed

Streak: consecutive days, walking back from today, on which at least half
of the configured habits were done.  Today is provisional: if it does not
qualify it is skipped rather than breaking the streak.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from reflect.config import (
    DEFAULT_PHONE_LIMIT,
    DEFAULT_PHONE_METRIC,
    DEFAULT_SLEEP_GOAL,
    DEFAULT_SLEEP_METRIC,
    ReflectConfig,
)
from reflect.engine.snapshot import AppConfig, Entry, date_key

__all__ = ["MetricRules", "DEFAULT_RULES", "current_streak", "daily_score", "day_qualifies"]

HABIT_WEIGHT = 80
SLEEP_WEIGHT = 10
PHONE_WEIGHT = 10
SLEEP_GRACE_HOURS = 1.5
PHONE_GRACE_HOURS = 1.0
STREAK_WINDOW_DAYS = 365


@dataclass(frozen=True, slots=True)
class MetricRules:
    """Which metrics hold sleep / phone hours, and the goal fallbacks."""

    sleep_metric: str = DEFAULT_SLEEP_METRIC
    phone_metric: str = DEFAULT_PHONE_METRIC
    default_sleep_goal: float = DEFAULT_SLEEP_GOAL
    default_phone_limit: float = DEFAULT_PHONE_LIMIT

    @classmethod
    def from_config(cls, cfg: ReflectConfig) -> MetricRules:
        return cls(
            sleep_metric=cfg.sleep_metric,
            phone_metric=cfg.phone_metric,
            default_sleep_goal=cfg.default_sleep_goal,
            default_phone_limit=cfg.default_phone_limit,
        )

    def sleep_goal(self, config: AppConfig) -> float:
        return config.goals.get("sleep") or self.default_sleep_goal

    def phone_limit(self, config: AppConfig) -> float:
        return config.goals.get("phone") or self.default_phone_limit


DEFAULT_RULES = MetricRules()


def daily_score(
    entry: Entry | None,
    config: AppConfig,
    rules: MetricRules = DEFAULT_RULES,
) -> int:
    """Score one day on a 0–100 scale (see module docstring)."""
    if entry is None:
        return 0

    score = 0.0
    habits = config.habit_names
    if habits:
        score += entry.done_count(habits) / len(habits) * HABIT_WEIGHT

    sleep_goal = rules.sleep_goal(config)
    sleep = entry.metrics.get(rules.sleep_metric) or 0
    if sleep >= sleep_goal:
        score += SLEEP_WEIGHT
    elif sleep >= sleep_goal - SLEEP_GRACE_HOURS:
        score += SLEEP_WEIGHT / 2

    if entry.completed:
        phone_limit = rules.phone_limit(config)
        phone = entry.metrics.get(rules.phone_metric)
        if phone is not None and phone <= phone_limit:
            score += PHONE_WEIGHT
        elif phone is not None and phone <= phone_limit + PHONE_GRACE_HOURS:
            score += PHONE_WEIGHT / 2

    # half-up rounding
    return min(math.floor(score + 0.5), 100)


def day_qualifies(entry: Entry | None, habit_names: list[str]) -> bool:
    """A streak day: at least half of a non-empty habit list done."""
    if not habit_names:
        return False
    done = entry.done_count(habit_names) if entry is not None else 0
    return done >= len(habit_names) / 2


def current_streak(
    entries: Mapping[str, Entry],
    config: AppConfig,
    *,
    today: date | None = None,
) -> int:
    """Consecutive qualifying days ending today (or yesterday, if today is pending)."""
    today = today or date.today()
    habits = config.habit_names
    streak = 0
    for offset in range(STREAK_WINDOW_DAYS):
        entry = entries.get(date_key(today - timedelta(days=offset)))
        if day_qualifies(entry, habits):
            streak += 1
        elif offset == 0:
            continue
        else:
            break
    return streak

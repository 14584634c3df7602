"""
reflect.constants — Shared Constants & Helpers
================================================

Single source of truth for the leveling formula, the attribute keys, the
quest reward table and the scoring values used by daily actions.
Import from here instead of duplicating in engine, services, and API.
"""

from __future__ import annotations

import enum
import math

# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------
class AttributeKey(enum.StrEnum):
    """The four character stats a scoring event can train."""
    STR = "STR"  # Strength
    INT = "INT"  # Intellect
    WIL = "WIL"  # Willpower
    CRE = "CRE"  # Creativity


ATTRIBUTE_KEYS: tuple[str, ...] = tuple(a.value for a in AttributeKey)

# Legacy string habits carry no attribute; they train willpower.
DEFAULT_HABIT_ATTRIBUTE = AttributeKey.WIL


# ---------------------------------------------------------------------------
# Leveling formula — THE single canonical implementation
# ---------------------------------------------------------------------------
LEVEL_SCALING_FACTOR = 100  # xp = (level - 1)^2 * 100


def level_for_xp(xp: int) -> int:
    """Level reached with *xp* total experience.

    Uses the square-root curve::

        level = floor(sqrt(xp / 100)) + 1

    Negative input is treated as zero.
    """
    xp = max(0, xp)
    # floor(sqrt(x / 100)) == isqrt(x // 100) for integer x
    return math.isqrt(int(xp) // LEVEL_SCALING_FACTOR) + 1


def xp_for_level(level: int) -> int:
    """XP threshold at which *level* + 1 is reached (``level² * 100``)."""
    return level ** 2 * LEVEL_SCALING_FACTOR


# ---------------------------------------------------------------------------
# Economy
# ---------------------------------------------------------------------------
HISTORY_LIMIT = 50
GOLD_RATE = 0.5


class QuestDifficulty(enum.StrEnum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class QuestStatus(enum.StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


# difficulty → (xp_reward, gold_reward)
QUEST_REWARDS: dict[QuestDifficulty, tuple[int, int]] = {
    QuestDifficulty.COMMON: (50, 10),
    QuestDifficulty.RARE: (100, 25),
    QuestDifficulty.EPIC: (200, 50),
    QuestDifficulty.LEGENDARY: (500, 100),
}


# ---------------------------------------------------------------------------
# Scoring values for daily actions
# ---------------------------------------------------------------------------
HABIT_XP = 20
TASK_XP = 10
PLANNED_TASK_XP = 15
QUEST_TASK_XP = 10
DAY_CLOSE_XP = 100

# Built-in shop items: id → (name, cost)
SHOP_ITEMS: dict[str, tuple[str, int]] = {
    "shield": ("Escudo de Racha", 500),
    "double_xp": ("Doble XP (24h)", 300),
    "theme_dark": ("Tema Dark Gold", 1000),
}


# ---------------------------------------------------------------------------
# Entry keys
# ---------------------------------------------------------------------------
INBOX_KEY = "inbox"  # unscheduled task bucket
DATE_FORMAT = "%Y-%m-%d"

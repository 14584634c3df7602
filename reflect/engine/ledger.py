"""
reflect.engine.ledger — Progression Ledger
============================================

Owns every change to the game economy (XP, level, gold, attributes,
history).  Each operation is an explicit state transition::

    (UserProfile, event) → UserProfile

No hidden state: callers own the profile and thread it through.  The only
side effects are notifications, which are not part of the returned state.

Economy rules:
  * ``level = floor(sqrt(xp / 100)) + 1`` — never stored independently.
  * Gold moves with XP at half rate: gains pay ``max(1, floor(Δ/2))``,
    losses cost ``ceil(Δ/2)``.  Gold never goes below zero.
  * A named attribute moves by exactly one point per event, floored at 0.
  * History keeps the newest 50 records, newest first.
"""

from __future__ import annotations

import enum
import logging
import math
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from reflect.constants import GOLD_RATE, HISTORY_LIMIT, level_for_xp, xp_for_level
from reflect.engine.events import Notification, NotificationKind, Notifier, emit
from reflect.engine.snapshot import HistoryRecord, UserProfile, default_attributes

logger = logging.getLogger(__name__)

__all__ = [
    "LevelTransition",
    "add_gold",
    "apply_scoring_event",
    "classify_transition",
    "gold_delta_for",
    "level_progress",
    "reset_progress",
    "spend_gold",
]


class LevelTransition(enum.StrEnum):
    UP = "up"
    DOWN = "down"
    UNCHANGED = "unchanged"


def classify_transition(old_level: int, new_level: int) -> LevelTransition:
    if new_level > old_level:
        return LevelTransition.UP
    if new_level < old_level:
        return LevelTransition.DOWN
    return LevelTransition.UNCHANGED


def gold_delta_for(amount: int) -> int:
    """Gold change that accompanies an XP change of *amount*.

    Positive events always pay at least 1 gold.
    """
    if amount > 0:
        return max(1, math.floor(amount * GOLD_RATE))
    return math.ceil(amount * GOLD_RATE)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
def apply_scoring_event(
    profile: UserProfile,
    amount: int,
    reason: str,
    attribute: str | None = None,
    *,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> UserProfile:
    """Convert one scoring event into a new economy state.

    Parameters
    ----------
    profile : current state.
    amount : signed XP change.
    reason : human-readable cause, stored in the history record.
    attribute : optional attribute key trained (+1) or drained (-1).
    notifier : receives one notification classified by level transition.
    now : timestamp for the history record (defaults to UTC now).

    Never fails: out-of-range results are clamped to their floors.
    """
    now = now or datetime.now(UTC)

    new_xp = max(0, profile.xp + amount)
    gold_change = gold_delta_for(amount)
    new_gold = max(0, profile.gold + gold_change)

    old_level = profile.level
    new_level = level_for_xp(new_xp)
    transition = classify_transition(old_level, new_level)

    attributes = {**default_attributes(), **profile.attributes}
    if attribute:
        step = 1 if amount > 0 else -1
        attributes[attribute] = max(0, attributes.get(attribute, 0) + step)

    record = HistoryRecord(
        id=str(uuid.uuid4()),
        timestamp=now.isoformat(),
        reason=reason,
        xp_delta=amount,
        attribute=attribute,
    )
    history = ((record,) + profile.history)[:HISTORY_LIMIT]

    updated = replace(
        profile,
        xp=new_xp,
        level=new_level,
        gold=new_gold,
        attributes=attributes,
        history=history,
    )

    _notify_scoring(notifier, transition, new_level, amount, gold_change, reason, attribute)
    if transition is not LevelTransition.UNCHANGED:
        logger.info(
            "Level %s: %d → %d (xp=%d, reason=%s)",
            transition.value, old_level, new_level, new_xp, reason,
        )
    return updated


def _notify_scoring(
    notifier: Notifier | None,
    transition: LevelTransition,
    new_level: int,
    amount: int,
    gold_change: int,
    reason: str,
    attribute: str | None,
) -> None:
    meta = {"amount": amount, "gold": gold_change, "level": new_level, "attribute": attribute}

    if transition is LevelTransition.UP:
        emit(notifier, Notification(
            NotificationKind.LEVEL_UP,
            f"¡Nivel {new_level} Alcanzado! ⚔️",
            "Has subido de nivel. ¡Sigue así!",
            celebrate=True,
            metadata=meta,
        ))
    elif transition is LevelTransition.DOWN:
        emit(notifier, Notification(
            NotificationKind.LEVEL_DOWN,
            f"¡Has bajado al Nivel {new_level}! 📉",
            "Cuidado, estás perdiendo progreso.",
            metadata=meta,
        ))
    elif amount > 0:
        attr_text = f" | +1 {attribute}" if attribute else ""
        emit(notifier, Notification(
            NotificationKind.XP_GAIN,
            f"+{amount} XP | +{gold_change} 🪙{attr_text}",
            reason,
            metadata=meta,
        ))
    else:
        attr_text = f" | -1 {attribute}" if attribute else ""
        emit(notifier, Notification(
            NotificationKind.XP_LOSS,
            f"{amount} XP | {gold_change} 🪙{attr_text}",
            reason,
            metadata=meta,
        ))


# ---------------------------------------------------------------------------
# Gold
# ---------------------------------------------------------------------------
def spend_gold(
    profile: UserProfile,
    amount: int,
    *,
    notifier: Notifier | None = None,
) -> tuple[bool, UserProfile]:
    """Deduct *amount* gold.

    Returns ``(False, profile)`` unchanged when the balance is insufficient;
    this is the ledger's only rejectable precondition.
    """
    if amount > profile.gold:
        emit(notifier, Notification(
            NotificationKind.INSUFFICIENT_GOLD,
            "No tienes suficiente oro",
            metadata={"cost": amount, "gold": profile.gold},
        ))
        return False, profile
    return True, replace(profile, gold=profile.gold - amount)


def add_gold(profile: UserProfile, amount: int) -> UserProfile:
    """Credit *amount* gold directly (quest payouts).  Floors at zero."""
    return replace(profile, gold=max(0, profile.gold + amount))


# ---------------------------------------------------------------------------
# Reset & progress
# ---------------------------------------------------------------------------
def reset_progress(
    profile: UserProfile,
    *,
    notifier: Notifier | None = None,
) -> UserProfile:
    """Back to level 1 with nothing earned.  Inventory is kept.

    Irreversible — callers confirm with the user before invoking.
    """
    logger.warning("Progress reset (was level %d, %d xp)", profile.level, profile.xp)
    emit(notifier, Notification(
        NotificationKind.PROGRESS_RESET, "Perfil reiniciado a Nivel 1",
    ))
    return replace(
        profile,
        xp=0,
        gold=0,
        level=1,
        attributes=default_attributes(),
        history=(),
    )


def level_progress(profile: UserProfile) -> float:
    """Percentage (0–100) of the way from the current level to the next."""
    level = level_for_xp(profile.xp)
    floor_xp = xp_for_level(level - 1)
    ceiling_xp = xp_for_level(level)
    return (profile.xp - floor_xp) / (ceiling_xp - floor_xp) * 100

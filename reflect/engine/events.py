"""
reflect.engine.events — User-facing Notification Envelope
==========================================================

The engine is pure, but several operations have an observable side effect:
a toast for an XP change, a celebration on level-up or on an achievement
unlock, a warning when a save is rolled back.  Those are expressed as
:class:`Notification` values handed to a :class:`Notifier`.  Delivery
(logging, buffering for a UI, …) lives in :mod:`reflect.services.notifications`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

__all__ = ["Notification", "NotificationKind", "Notifier", "emit"]


class NotificationKind(enum.StrEnum):
    XP_GAIN = "xp_gain"
    XP_LOSS = "xp_loss"
    LEVEL_UP = "level_up"
    LEVEL_DOWN = "level_down"
    ACHIEVEMENT = "achievement"
    INSUFFICIENT_GOLD = "insufficient_gold"
    PURCHASE = "purchase"
    PROGRESS_RESET = "progress_reset"
    QUEST = "quest"
    SYNC_ERROR = "sync_error"


@dataclass(frozen=True, slots=True)
class Notification:
    """One message for the user.

    ``celebrate`` asks the presentation layer for its celebratory effect
    (confetti); it is set on level-ups and achievement unlocks.
    """

    kind: NotificationKind
    title: str
    description: str = ""
    celebrate: bool = False
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.kind in (
            NotificationKind.XP_LOSS,
            NotificationKind.LEVEL_DOWN,
            NotificationKind.INSUFFICIENT_GOLD,
            NotificationKind.SYNC_ERROR,
        )


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


def emit(notifier: Notifier | None, notification: Notification) -> None:
    """Deliver *notification* if a notifier is wired, otherwise drop it."""
    if notifier is not None:
        notifier.notify(notification)

"""
reflect.engine.snapshot — The Snapshot Document and its Records
================================================================

The whole application state is one document (the *snapshot*)::

    {user, config, entries, quests, achievements, bosses, notes, events}

Every mutation builds a new snapshot from the previous one; nothing in the
engine mutates a snapshot in place.  Records are frozen dataclasses and
sequences are tuples; mapping fields are plain dicts that are only ever
copied-on-write (``{**old, key: new}``).

``from_dict`` expects the canonical document shape.  Raw documents from
storage go through :func:`reflect.engine.migration.load_snapshot` first,
which normalizes legacy encodings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from reflect.constants import ATTRIBUTE_KEYS, DATE_FORMAT, QuestDifficulty, QuestStatus

__all__ = [
    "AppConfig",
    "Boss",
    "Entry",
    "HabitConfig",
    "HistoryRecord",
    "Quest",
    "Review",
    "Reward",
    "Snapshot",
    "Task",
    "UserProfile",
    "date_key",
    "default_attributes",
]


def date_key(d: date) -> str:
    """Entry key for calendar day *d* (``YYYY-MM-DD``)."""
    return d.strftime(DATE_FORMAT)


def default_attributes() -> dict[str, int]:
    return {key: 0 for key in ATTRIBUTE_KEYS}


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """One scoring event, as shown in the activity feed.

    Serialized with the document's historical keys
    (``date``, ``action``, ``xpGained``).
    """

    id: str
    timestamp: str
    reason: str
    xp_delta: int
    attribute: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "date": self.timestamp,
            "action": self.reason,
            "xpGained": self.xp_delta,
            "attribute": self.attribute,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryRecord:
        return cls(
            id=str(data.get("id", "")),
            timestamp=str(data.get("date", "")),
            reason=str(data.get("action", "")),
            xp_delta=int(data.get("xpGained", 0)),
            attribute=data.get("attribute"),
        )


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Game-economy state.  Only :mod:`reflect.engine.ledger` builds new ones."""

    xp: int = 0
    level: int = 1
    gold: int = 0
    attributes: dict[str, int] = field(default_factory=default_attributes)
    history: tuple[HistoryRecord, ...] = ()
    inventory: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "xp": self.xp,
            "level": self.level,
            "gold": self.gold,
            "attributes": dict(self.attributes),
            "history": [h.to_dict() for h in self.history],
            "inventory": list(self.inventory),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> UserProfile:
        data = data or {}
        raw_attrs = data.get("attributes") or {}
        attributes = default_attributes()
        for key in ATTRIBUTE_KEYS:
            attributes[key] = max(0, int(raw_attrs.get(key) or 0))
        return cls(
            xp=max(0, int(data.get("xp") or 0)),
            level=max(1, int(data.get("level") or 1)),
            gold=max(0, int(data.get("gold") or 0)),
            attributes=attributes,
            history=tuple(HistoryRecord.from_dict(h) for h in data.get("history") or []),
            inventory=tuple(dict.fromkeys(data.get("inventory") or [])),
        )


# ---------------------------------------------------------------------------
# Document config (user-editable)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HabitConfig:
    id: str
    name: str
    attribute: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"id": self.id, "name": self.name, "attribute": self.attribute})


@dataclass(frozen=True, slots=True)
class Reward:
    """A custom shop reward the user defined for themselves."""

    id: str
    name: str
    cost: int
    icon: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"id": self.id, "name": self.name, "cost": self.cost, "icon": self.icon})


@dataclass(frozen=True, slots=True)
class AppConfig:
    habits: tuple[HabitConfig, ...] = ()
    goals: dict[str, float] = field(default_factory=dict)
    rewards: tuple[Reward, ...] = ()
    metrics: tuple[str, ...] = ()
    active_theme: str | None = None

    @property
    def habit_names(self) -> list[str]:
        return [h.name for h in self.habits]

    def habit(self, name: str) -> HabitConfig | None:
        for h in self.habits:
            if h.name == name:
                return h
        return None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "habits": [h.to_dict() for h in self.habits],
            "goals": dict(self.goals),
            "rewards": [r.to_dict() for r in self.rewards],
            "metrics": list(self.metrics),
            "activeTheme": self.active_theme,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AppConfig:
        data = data or {}
        return cls(
            habits=tuple(
                HabitConfig(id=str(h["id"]), name=h["name"], attribute=h.get("attribute"))
                for h in data.get("habits") or []
            ),
            goals={k: v for k, v in (data.get("goals") or {}).items() if v is not None},
            rewards=tuple(
                Reward(id=str(r["id"]), name=r["name"], cost=int(r["cost"]), icon=r.get("icon"))
                for r in data.get("rewards") or []
            ),
            metrics=tuple(data.get("metrics") or ()),
            active_theme=data.get("activeTheme"),
        )


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Task:
    name: str
    completed: bool = False
    quest_id: str | None = None
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "name": self.name,
            "completed": self.completed,
            "questId": self.quest_id,
            "createdAt": self.created_at,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            name=data["name"],
            completed=bool(data.get("completed", False)),
            quest_id=data.get("questId"),
            created_at=data.get("createdAt"),
        )


@dataclass(frozen=True, slots=True)
class Review:
    win: str | None = None
    fail: str | None = None
    fix: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"win": self.win, "fail": self.fail, "fix": self.fix})


@dataclass(frozen=True, slots=True)
class Entry:
    """Everything recorded for one calendar day (or the inbox bucket)."""

    habits: dict[str, bool] = field(default_factory=dict)
    metrics: dict[str, float] = field(default_factory=dict)
    tasks: dict[str, Task] = field(default_factory=dict)
    review: Review = field(default_factory=Review)
    completed: bool = False

    def done_count(self, habit_names: list[str]) -> int:
        return sum(1 for name in habit_names if self.habits.get(name))

    def all_done(self, habit_names: list[str]) -> bool:
        return all(self.habits.get(name) for name in habit_names)

    def to_dict(self) -> dict[str, Any]:
        return {
            "habits": dict(self.habits),
            "metrics": dict(self.metrics),
            "tasks": {task_id: t.to_dict() for task_id, t in self.tasks.items()},
            "review": self.review.to_dict(),
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Entry:
        data = data or {}
        review = data.get("review") or {}
        return cls(
            habits={k: bool(v) for k, v in (data.get("habits") or {}).items()},
            metrics={k: v for k, v in (data.get("metrics") or {}).items() if v is not None},
            tasks={
                task_id: Task.from_dict(t)
                for task_id, t in (data.get("tasks") or {}).items()
            },
            review=Review(win=review.get("win"), fail=review.get("fail"), fix=review.get("fix")),
            completed=bool(data.get("completed", False)),
        )


# ---------------------------------------------------------------------------
# Quests & bosses
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Quest:
    """A long-running goal.  Progress is derived from linked tasks, never stored."""

    id: str
    title: str
    difficulty: QuestDifficulty
    status: QuestStatus
    xp_reward: int
    gold_reward: int
    description: str = ""
    documentation: str = ""
    attribute: str | None = None
    deadline: str | None = None
    created_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty.value,
            "status": self.status.value,
            "xpReward": self.xp_reward,
            "goldReward": self.gold_reward,
            "documentation": self.documentation,
            "attribute": self.attribute,
            "deadline": self.deadline,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Quest:
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            difficulty=QuestDifficulty(data.get("difficulty", "common")),
            status=QuestStatus(data.get("status", "active")),
            xp_reward=int(data.get("xpReward") or 0),
            gold_reward=int(data.get("goldReward") or 0),
            description=data.get("description") or "",
            documentation=data.get("documentation") or "",
            attribute=data.get("attribute"),
            deadline=data.get("deadline"),
            created_at=data.get("createdAt"),
            completed_at=data.get("completedAt"),
        )


@dataclass(frozen=True, slots=True)
class Boss:
    id: str
    name: str
    total_hp: int
    current_hp: int
    xp_reward: int
    description: str | None = None
    gold_reward: int | None = None
    damage_type: str | None = None
    status: str = "active"
    deadline: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "totalHp": self.total_hp,
            "currentHp": self.current_hp,
            "xpReward": self.xp_reward,
            "goldReward": self.gold_reward,
            "damageType": self.damage_type,
            "status": self.status,
            "deadline": self.deadline,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Boss:
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            total_hp=int(data.get("totalHp") or 0),
            current_hp=int(data.get("currentHp") or 0),
            xp_reward=int(data.get("xpReward") or 0),
            description=data.get("description"),
            gold_reward=data.get("goldReward"),
            damage_type=data.get("damageType"),
            status=data.get("status", "active"),
            deadline=data.get("deadline"),
        )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Snapshot:
    """The full in-memory state document.

    ``notes`` and ``events`` are carried through untouched; the engine
    never looks inside them.
    """

    user: UserProfile = field(default_factory=UserProfile)
    config: AppConfig = field(default_factory=AppConfig)
    entries: dict[str, Entry] = field(default_factory=dict)
    quests: tuple[Quest, ...] = ()
    achievements: dict[str, str] = field(default_factory=dict)
    bosses: tuple[Boss, ...] = ()
    notes: tuple[dict, ...] = ()
    events: tuple[dict, ...] = ()

    def entry(self, key: str) -> Entry | None:
        return self.entries.get(key)

    def with_entry(self, key: str, entry: Entry) -> Snapshot:
        return replace(self, entries={**self.entries, key: entry})

    def with_user(self, user: UserProfile) -> Snapshot:
        return replace(self, user=user)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user.to_dict(),
            "config": self.config.to_dict(),
            "entries": {key: e.to_dict() for key, e in self.entries.items()},
            "quests": [q.to_dict() for q in self.quests],
            "achievements": dict(self.achievements),
            "bosses": [b.to_dict() for b in self.bosses],
            "notes": [dict(n) for n in self.notes],
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Snapshot:
        data = data or {}
        return cls(
            user=UserProfile.from_dict(data.get("user")),
            config=AppConfig.from_dict(data.get("config")),
            entries={
                key: Entry.from_dict(e) for key, e in (data.get("entries") or {}).items()
            },
            quests=tuple(Quest.from_dict(q) for q in data.get("quests") or []),
            achievements=dict(data.get("achievements") or {}),
            bosses=tuple(Boss.from_dict(b) for b in data.get("bosses") or []),
            notes=tuple(data.get("notes") or ()),
            events=tuple(data.get("events") or ()),
        )

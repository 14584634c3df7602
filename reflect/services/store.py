"""
reflect.services.store — Remote Store (SQL)
=============================================

The remote side of synchronisation.  The coordinator only relies on the
:class:`RemoteStore` protocol; :class:`SqlRemoteStore` is the relational
implementation backed by :mod:`reflect.database.models`.

Write semantics:
- ``write_profile`` always overwrites the profile row and the history feed.
- ``upsert_entries`` is keyed by ``(user_id, date)``, last write wins.
- ``write_slices`` rewrites only the named document slices.

There is no transaction spanning several calls: a failure between two
calls leaves the earlier ones applied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import SQLAlchemyError

from reflect.database.engine import get_session
from reflect.database.models import (
    DailyLog,
    NoteRow,
    Profile,
    QuestRow,
    UserAchievement,
    UserDocument,
    UserHistory,
)
from reflect.engine.migration import load_snapshot
from reflect.engine.snapshot import Entry, Snapshot, UserProfile

logger = logging.getLogger(__name__)

SLICE_NAMES = ("quests", "achievements", "notes", "document")


class PersistenceError(RuntimeError):
    """A remote read or write failed.  Wraps the driver exception."""


class RemoteStore(Protocol):
    def read(self, user_id: str) -> Snapshot: ...

    def write_profile(self, user_id: str, profile: UserProfile) -> None: ...

    def upsert_entries(self, user_id: str, entries: Mapping[str, Entry]) -> None: ...

    def write_slices(self, user_id: str, snapshot: Snapshot, names: Iterable[str]) -> None: ...


@contextmanager
def _guard(operation: str, user_id: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Store %s failed for user %s: %s", operation, user_id, exc)
        raise PersistenceError(f"{operation} failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Row <-> document helpers
# ---------------------------------------------------------------------------
def _entry_document(row: DailyLog) -> dict[str, Any]:
    return {
        "habits": row.completed_habits or {},
        "metrics": row.metrics or {},
        "tasks": row.tasks or {},
        "review": {"win": row.review_win, "fail": row.review_fail, "fix": row.review_fix},
        "completed": bool(row.completed),
    }


def _quest_document(row: QuestRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "description": row.description,
        "documentation": row.documentation,
        "difficulty": row.difficulty,
        "status": row.status,
        "xpReward": row.xp_reward,
        "goldReward": row.gold_reward,
        "attribute": row.attribute,
        "deadline": row.deadline,
        "createdAt": row.created_at,
        "completedAt": row.completed_at,
    }


def _note_document(row: NoteRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "title": row.title,
        "content": row.content,
        "tags": list(row.tags or []),
        "createdAt": row.created_at,
        "updatedAt": row.updated_at,
    }


class SqlRemoteStore:
    """:class:`RemoteStore` on top of a SQLAlchemy engine.

    All methods are synchronous; call them through
    :func:`reflect.database.engine.run_db` from async code.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    # -------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------
    def read(self, user_id: str) -> Snapshot:
        """Assemble the user's snapshot.  An unknown user gets the default one."""
        with _guard("read", user_id), get_session(self._engine) as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                logger.info("No stored profile for %s; starting from defaults", user_id)
                return load_snapshot({})

            history = session.scalars(
                select(UserHistory)
                .where(UserHistory.user_id == user_id)
                .order_by(UserHistory.position)
            ).all()
            logs = session.scalars(select(DailyLog).where(DailyLog.user_id == user_id)).all()
            quests = session.scalars(
                select(QuestRow).where(QuestRow.user_id == user_id).order_by(QuestRow.position)
            ).all()
            unlocked = session.scalars(
                select(UserAchievement).where(UserAchievement.user_id == user_id)
            ).all()
            notes = session.scalars(select(NoteRow).where(NoteRow.user_id == user_id)).all()
            extra = session.get(UserDocument, user_id)

            document = {
                "user": {
                    "xp": profile.xp,
                    "level": profile.level,
                    "gold": profile.gold,
                    "attributes": profile.attributes or {},
                    "inventory": profile.inventory or [],
                    "history": [
                        {
                            "id": h.id,
                            "date": h.created_at,
                            "action": h.action,
                            "xpGained": h.xp_gained,
                            "attribute": h.attribute,
                        }
                        for h in history
                    ],
                },
                "config": extra.config if extra else {},
                "entries": {row.date: _entry_document(row) for row in logs},
                "quests": [_quest_document(q) for q in quests],
                "achievements": {a.achievement_id: a.unlocked_at for a in unlocked},
                "bosses": extra.bosses if extra else [],
                "notes": [_note_document(n) for n in notes],
                "events": extra.events if extra else [],
            }
        return load_snapshot(document)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def write_profile(self, user_id: str, profile: UserProfile) -> None:
        with _guard("write_profile", user_id), get_session(self._engine) as session:
            row = session.get(Profile, user_id)
            if row is None:
                row = Profile(id=user_id)
                session.add(row)
            row.xp = profile.xp
            row.level = profile.level
            row.gold = profile.gold
            row.attributes = dict(profile.attributes)
            row.inventory = list(profile.inventory)

            session.execute(delete(UserHistory).where(UserHistory.user_id == user_id))
            session.add_all(
                UserHistory(
                    id=record.id,
                    user_id=user_id,
                    action=record.reason,
                    xp_gained=record.xp_delta,
                    attribute=record.attribute,
                    created_at=record.timestamp,
                    position=position,
                )
                for position, record in enumerate(profile.history)
            )

    def upsert_entries(self, user_id: str, entries: Mapping[str, Entry]) -> None:
        if not entries:
            return
        with _guard("upsert_entries", user_id), get_session(self._engine) as session:
            existing = {
                row.date: row
                for row in session.scalars(
                    select(DailyLog).where(
                        DailyLog.user_id == user_id,
                        DailyLog.date.in_(list(entries)),
                    )
                )
            }
            for key, entry in entries.items():
                row = existing.get(key)
                if row is None:
                    row = DailyLog(user_id=user_id, date=key)
                    session.add(row)
                data = entry.to_dict()
                row.completed_habits = data["habits"]
                row.metrics = data["metrics"]
                row.tasks = data["tasks"]
                row.review_win = entry.review.win
                row.review_fail = entry.review.fail
                row.review_fix = entry.review.fix
                row.completed = entry.completed
        logger.debug("Upserted %d entries for %s", len(entries), user_id)

    def write_slices(self, user_id: str, snapshot: Snapshot, names: Iterable[str]) -> None:
        """Rewrite the named slices (see :data:`SLICE_NAMES`) from *snapshot*."""
        names = set(names)
        unknown = names - set(SLICE_NAMES)
        if unknown:
            raise ValueError(f"Unknown slices: {sorted(unknown)}")
        if not names:
            return

        with _guard("write_slices", user_id), get_session(self._engine) as session:
            if "quests" in names:
                session.execute(delete(QuestRow).where(QuestRow.user_id == user_id))
                session.add_all(
                    QuestRow(
                        id=q.id,
                        user_id=user_id,
                        title=q.title,
                        description=q.description,
                        documentation=q.documentation,
                        difficulty=q.difficulty.value,
                        status=q.status.value,
                        xp_reward=q.xp_reward,
                        gold_reward=q.gold_reward,
                        attribute=q.attribute,
                        deadline=q.deadline,
                        created_at=q.created_at,
                        completed_at=q.completed_at,
                        position=position,
                    )
                    for position, q in enumerate(snapshot.quests)
                )

            if "achievements" in names:
                # Append-only: existing stamps are never rewritten
                stored = set(session.scalars(
                    select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
                ))
                session.add_all(
                    UserAchievement(user_id=user_id, achievement_id=aid, unlocked_at=stamp)
                    for aid, stamp in snapshot.achievements.items()
                    if aid not in stored
                )

            if "notes" in names:
                session.execute(delete(NoteRow).where(NoteRow.user_id == user_id))
                session.add_all(
                    NoteRow(
                        id=str(note["id"]),
                        user_id=user_id,
                        title=note.get("title") or "",
                        content=note.get("content") or "",
                        tags=list(note.get("tags") or []),
                        created_at=note.get("createdAt"),
                        updated_at=note.get("updatedAt"),
                    )
                    for note in snapshot.notes
                    if note.get("id") is not None
                )

            if "document" in names:
                data = snapshot.to_dict()
                row = session.get(UserDocument, user_id)
                if row is None:
                    row = UserDocument(user_id=user_id)
                    session.add(row)
                row.config = data["config"]
                row.bosses = data["bosses"]
                row.events = data["events"]
        logger.debug("Wrote slices %s for %s", sorted(names), user_id)

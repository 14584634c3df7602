"""
reflect.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Relational layout of the remote store.  One user's snapshot is spread
over these tables and reassembled by :mod:`reflect.services.store`.

Tables:
- profiles           — xp / level / gold / attributes / inventory
- user_history       — scoring history (newest 50 per user)
- daily_logs         — one row per (user, date) entry, last write wins
- quests             — quest definitions (progress is derived, not stored)
- user_achievements  — append-only unlock stamps
- notes              — free-form notes
- user_documents     — document config, bosses and calendar events
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Reflect ORM models."""


# ---------------------------------------------------------------------------
# Profiles — one row per user
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    gold: Mapped[int] = mapped_column(Integer, default=0)
    attributes: Mapped[dict] = mapped_column(JSONType, default=dict)
    inventory: Mapped[list] = mapped_column(JSONType, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id!r} lvl={self.level} xp={self.xp}>"


# ---------------------------------------------------------------------------
# UserHistory — scoring feed
# ---------------------------------------------------------------------------
class UserHistory(Base):
    __tablename__ = "user_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    xp_gained: Mapped[int] = mapped_column(Integer, nullable=False)
    attribute: Mapped[str | None] = mapped_column(String(8), default=None)
    # ISO string as written by the client; ordering key for the feed
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)


# ---------------------------------------------------------------------------
# DailyLog — one entry per user and date key
# ---------------------------------------------------------------------------
class DailyLog(Base):
    __tablename__ = "daily_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[str] = mapped_column(String(16), nullable=False)  # YYYY-MM-DD or "inbox"
    completed_habits: Mapped[dict] = mapped_column(JSONType, default=dict)
    metrics: Mapped[dict] = mapped_column(JSONType, default=dict)
    tasks: Mapped[dict] = mapped_column(JSONType, default=dict)
    review_win: Mapped[str | None] = mapped_column(Text, default=None)
    review_fail: Mapped[str | None] = mapped_column(Text, default=None)
    review_fix: Mapped[str | None] = mapped_column(Text, default=None)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_logs_user_date"),
    )

    def __repr__(self) -> str:
        return f"<DailyLog user={self.user_id!r} date={self.date}>"


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------
class QuestRow(Base):
    __tablename__ = "quests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    documentation: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0)
    gold_reward: Mapped[int] = mapped_column(Integer, default=0)
    attribute: Mapped[str | None] = mapped_column(String(8), default=None)
    deadline: Mapped[str | None] = mapped_column(String(40), default=None)
    created_at: Mapped[str | None] = mapped_column(String(40), default=None)
    completed_at: Mapped[str | None] = mapped_column(String(40), default=None)
    position: Mapped[int] = mapped_column(Integer, default=0)


# ---------------------------------------------------------------------------
# UserAchievement — earned badges (append-only)
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    __tablename__ = "user_achievements"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    achievement_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    unlocked_at: Mapped[str] = mapped_column(String(40), nullable=False)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------
class NoteRow(Base):
    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), default="")
    content: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list] = mapped_column(JSONType, default=list)
    created_at: Mapped[str | None] = mapped_column(String(40), default=None)
    updated_at: Mapped[str | None] = mapped_column(String(40), default=None)


# ---------------------------------------------------------------------------
# UserDocument — the remaining document sections, stored as JSON
# ---------------------------------------------------------------------------
class UserDocument(Base):
    __tablename__ = "user_documents"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    config: Mapped[dict] = mapped_column(JSONType, default=dict)
    bosses: Mapped[list] = mapped_column(JSONType, default=list)
    events: Mapped[list] = mapped_column(JSONType, default=list)

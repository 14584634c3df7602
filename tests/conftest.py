"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from reflect.database.models import Base
from reflect.engine.events import Notification, NotificationKind


class RecordingNotifier:
    """Notifier that keeps everything it receives."""

    def __init__(self) -> None:
        self.items: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.items.append(notification)

    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.items]

    def of(self, kind: NotificationKind) -> list[Notification]:
        return [n for n in self.items if n.kind is kind]


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Reflect tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()

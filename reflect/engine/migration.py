"""
reflect.engine.migration — One-time Normalization of Legacy Documents
======================================================================

Older documents encode a task as a plain boolean keyed by its name
(``{"Comprar pan": true}``) and a habit as a plain string
(``["Madrugar", "Meditar"]``).  Both shapes are converted to their record
form exactly once, on ingest, so the rest of the engine only ever sees
canonical records.

This module is pure transformation — it never touches storage.
"""

from __future__ import annotations

import logging
from typing import Any

from reflect.constants import DEFAULT_HABIT_ATTRIBUTE
from reflect.engine.snapshot import Snapshot

logger = logging.getLogger(__name__)


def normalize_task(task_id: str, value: bool | dict[str, Any]) -> dict[str, Any]:
    """Return the object form of one stored task.

    A legacy boolean becomes ``{"name": task_id, "completed": value}``.
    Object-form tasks pass through unchanged.
    """
    if isinstance(value, bool):
        return {"name": task_id, "completed": value}
    return value


def normalize_habit(value: str | dict[str, Any]) -> dict[str, Any]:
    """Return the object form of one configured habit."""
    if isinstance(value, str):
        return {"id": value, "name": value, "attribute": DEFAULT_HABIT_ATTRIBUTE.value}
    return value


def migrate_tasks(document: dict[str, Any]) -> dict[str, Any]:
    """Normalize every task of every entry in a raw *document*.

    Returns a new document; the input is left untouched.
    """
    entries = document.get("entries")
    if not entries:
        return document

    migrated = 0
    new_entries: dict[str, Any] = {}
    for key, entry in entries.items():
        entry = entry or {}
        tasks = {}
        for task_id, value in (entry.get("tasks") or {}).items():
            if isinstance(value, bool):
                migrated += 1
            tasks[task_id] = normalize_task(task_id, value)
        new_entries[key] = {**entry, "tasks": tasks}

    if migrated:
        logger.info("Migrated %d legacy boolean tasks to object form", migrated)
    return {**document, "entries": new_entries}


def migrate_habits(document: dict[str, Any]) -> dict[str, Any]:
    """Normalize ``config.habits`` in a raw *document*."""
    config = document.get("config") or {}
    habits = config.get("habits")
    if not habits:
        return document
    return {
        **document,
        "config": {**config, "habits": [normalize_habit(h) for h in habits]},
    }


def migrate_document(document: dict[str, Any] | None) -> dict[str, Any]:
    """Apply every legacy-shape migration to a raw *document*."""
    return migrate_habits(migrate_tasks(document or {}))


def load_snapshot(document: dict[str, Any] | None) -> Snapshot:
    """Ingest a raw stored document into a canonical :class:`Snapshot`."""
    return Snapshot.from_dict(migrate_document(document))

"""
reflect.api.routes.data — Whole-document read/write
=====================================================
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from reflect.api.deps import get_notifications, get_service
from reflect.services.notifications import NotificationCenter
from reflect.services.reflect_service import ReflectService
from reflect.services.store import PersistenceError
from reflect.services.sync_service import SyncState

router = APIRouter(tags=["data"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SaveResult(BaseModel):
    success: bool
    updated_entries: list[str] = Field(default_factory=list)
    updated_slices: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
@router.get("/data")
async def read_data(service: ReflectService = Depends(get_service)):
    """Return the stored document (defaults on first use)."""
    try:
        snapshot = await service.load()
    except PersistenceError as exc:
        logger.error("Read failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to read data")
    return snapshot.to_dict()


@router.post("/data", response_model=SaveResult)
async def write_data(
    document: dict[str, Any] = Body(...),
    service: ReflectService = Depends(get_service),
):
    """Replace the stored document; only changed slices hit the database."""
    if not isinstance(document.get("entries"), dict):
        raise HTTPException(status_code=400, detail="Invalid data structure")

    try:
        await service.load()
        batch = service.replace_document(document)
    except PersistenceError as exc:
        logger.error("Read before write failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to save data")
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid data structure: {exc}")

    await service.flush()
    if batch.state is not SyncState.COMMITTED:
        raise HTTPException(status_code=500, detail="Failed to save data")
    return SaveResult(
        success=True,
        updated_entries=sorted(batch.entries),
        updated_slices=list(batch.slices),
    )


# ---------------------------------------------------------------------------
# Summary & notifications
# ---------------------------------------------------------------------------
@router.get("/summary")
async def read_summary(service: ReflectService = Depends(get_service)):
    try:
        await service.load()
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to read data")
    return service.summary()


@router.get("/notifications")
def read_notifications(
    drain: bool = Query(False),
    center: NotificationCenter = Depends(get_notifications),
):
    items = center.drain() if drain else center.recent()
    return {
        "notifications": [
            {
                "kind": n.kind.value,
                "title": n.title,
                "description": n.description,
                "celebrate": n.celebrate,
                "timestamp": n.timestamp.isoformat(),
            }
            for n in items
        ],
    }

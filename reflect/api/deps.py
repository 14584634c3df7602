"""
reflect.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from functools import lru_cache

from sqlalchemy import Engine

from reflect.config import ReflectConfig, load_config
from reflect.database.engine import create_db_engine
from reflect.engine.cache import SnapshotCache
from reflect.engine.consistency import MetricRules
from reflect.services.notifications import NotificationCenter
from reflect.services.reflect_service import ReflectService
from reflect.services.store import SqlRemoteStore
from reflect.services.sync_service import SyncCoordinator


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ReflectConfig:
    return load_config(os.getenv("REFLECT_CONFIG", "config.yaml"))


@lru_cache(maxsize=1)
def get_notifications() -> NotificationCenter:
    return NotificationCenter()


@lru_cache(maxsize=1)
def get_service() -> ReflectService:
    cfg = get_config()
    coordinator = SyncCoordinator(
        SqlRemoteStore(get_engine()),
        SnapshotCache(),
        cfg.user_id,
        notifier=get_notifications(),
        refetch_after_commit=cfg.refetch_after_commit,
    )
    return ReflectService(coordinator, rules=MetricRules.from_config(cfg))

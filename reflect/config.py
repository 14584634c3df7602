"""
reflect.config — YAML Configuration Loader
===========================================

This module reads ``config.yaml`` for **infrastructure-only** settings
(which user's document to sync, metric names, sync behaviour, API port).
Gameplay tuning that the user edits (habits, sleep goal, phone limit,
custom rewards) lives in the document's ``config`` section instead.
Secrets such as ``DATABASE_URL`` are read from the environment (``.env``).

Usage::

    from reflect.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.user_id)           # "85972b85-9044-4949-b232-98118cf7d417"
    print(cfg.sleep_metric)      # "Horas de Sueño"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_SLEEP_METRIC = "Horas de Sueño"
DEFAULT_PHONE_METRIC = "Horas de Móvil"
DEFAULT_SLEEP_GOAL = 7.5
DEFAULT_PHONE_LIMIT = 2.0


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReflectConfig:
    """Immutable configuration loaded from ``config.yaml``.

    ``sleep_metric`` / ``phone_metric`` name the entry metrics the
    consistency and achievement engines read.  The two ``default_*`` values
    apply when the document's ``config.goals`` leaves a goal unset.
    """

    # Identity
    user_id: str

    # Metric names inside Entry.metrics
    sleep_metric: str = DEFAULT_SLEEP_METRIC
    phone_metric: str = DEFAULT_PHONE_METRIC

    # Goal fallbacks
    default_sleep_goal: float = DEFAULT_SLEEP_GOAL
    default_phone_limit: float = DEFAULT_PHONE_LIMIT

    # Sync
    refetch_after_commit: bool = True

    # API
    api_port: int = 8000


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ReflectConfig:
    """Read *path* and return a :class:`ReflectConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return ReflectConfig(
        user_id=str(raw["user_id"]),
        sleep_metric=raw.get("sleep_metric") or DEFAULT_SLEEP_METRIC,
        phone_metric=raw.get("phone_metric") or DEFAULT_PHONE_METRIC,
        default_sleep_goal=float(raw.get("default_sleep_goal", DEFAULT_SLEEP_GOAL)),
        default_phone_limit=float(raw.get("default_phone_limit", DEFAULT_PHONE_LIMIT)),
        refetch_after_commit=bool(raw.get("refetch_after_commit", True)),
        api_port=int(raw.get("api_port", 8000)),
    )

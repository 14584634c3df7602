"""
Reflect — Habit Tracking with an RPG Progression Layer
========================================================
Daily habits, metrics, tasks and reviews earn XP, gold and attribute
points; streaks and achievements reward consistency; every change is
applied optimistically and reconciled with the remote store.

Package layout::

    reflect/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Economy constants, level curve, reward tables
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (profiles, daily_logs, quests, …)
    ├── engine/
    │   ├── snapshot.py    # Snapshot document + typed records
    │   ├── migration.py   # Legacy task / habit normalization
    │   ├── events.py      # Notification envelope
    │   ├── ledger.py      # XP / level / gold / attribute transitions
    │   ├── consistency.py # Daily score + streak
    │   ├── achievements.py # Achievement catalog + check logic
    │   ├── actions.py     # Habit, task, shop and boss actions
    │   ├── quests.py      # Quest rewards + derived progress
    │   └── cache.py       # Versioned snapshot cache
    ├── services/
    │   ├── store.py            # RemoteStore protocol + SQL implementation
    │   ├── sync_service.py     # Optimistic sync coordinator
    │   ├── reflect_service.py  # Update pipeline
    │   └── notifications.py    # Notification delivery
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # /api/data, /api/summary, /api/notifications
"""

__version__ = "0.1.0"

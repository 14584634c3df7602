"""
tests/test_migration.py — Legacy Document Normalization Tests
===============================================================
"""

from __future__ import annotations

from reflect.engine.migration import (
    load_snapshot,
    migrate_document,
    migrate_habits,
    migrate_tasks,
    normalize_habit,
    normalize_task,
)
from reflect.engine.snapshot import HabitConfig, Snapshot, Task


class TestNormalizeTask:
    def test_boolean_true(self):
        assert normalize_task("Comprar pan", True) == {"name": "Comprar pan", "completed": True}

    def test_boolean_false(self):
        assert normalize_task("Llamar", False) == {"name": "Llamar", "completed": False}

    def test_object_passes_through(self):
        value = {"name": "Leer", "completed": False, "questId": "q1"}
        assert normalize_task("t1", value) is value


class TestMigrateTasks:
    def test_mixed_entry(self):
        doc = {
            "entries": {
                "2024-01-05": {
                    "tasks": {
                        "Comprar pan": True,
                        "t-2": {"name": "Leer", "completed": False},
                    },
                },
            },
        }
        out = migrate_tasks(doc)
        tasks = out["entries"]["2024-01-05"]["tasks"]
        assert tasks["Comprar pan"] == {"name": "Comprar pan", "completed": True}
        assert tasks["t-2"] == {"name": "Leer", "completed": False}

    def test_input_not_mutated(self):
        doc = {"entries": {"2024-01-05": {"tasks": {"x": True}}}}
        migrate_tasks(doc)
        assert doc["entries"]["2024-01-05"]["tasks"]["x"] is True

    def test_no_entries(self):
        doc = {"user": {}}
        assert migrate_tasks(doc) is doc

    def test_migrated_task_matches_native(self):
        legacy = load_snapshot({"entries": {"inbox": {"tasks": {"Comprar pan": True}}}})
        native = load_snapshot({
            "entries": {"inbox": {"tasks": {"Comprar pan": {"name": "Comprar pan", "completed": True}}}},
        })
        assert legacy == native
        assert legacy.entries["inbox"].tasks["Comprar pan"] == Task(name="Comprar pan", completed=True)

    def test_migration_is_idempotent(self):
        doc = {"entries": {"2024-01-05": {"tasks": {"a": True, "b": False}}}}
        once = migrate_document(doc)
        assert migrate_document(once) == once


class TestMigrateHabits:
    def test_string_habit(self):
        assert normalize_habit("Madrugar") == {"id": "Madrugar", "name": "Madrugar", "attribute": "WIL"}

    def test_object_habit_untouched(self):
        habit = {"id": "h1", "name": "Leer", "attribute": "INT"}
        assert normalize_habit(habit) is habit

    def test_config_list(self):
        doc = {"config": {"habits": ["Madrugar", {"id": "h2", "name": "Leer", "attribute": "INT"}]}}
        snap = load_snapshot(doc)
        assert snap.config.habits == (
            HabitConfig(id="Madrugar", name="Madrugar", attribute="WIL"),
            HabitConfig(id="h2", name="Leer", attribute="INT"),
        )

    def test_no_config(self):
        doc = {"entries": {}}
        assert migrate_habits(doc) is doc


class TestLoadSnapshot:
    def test_empty_document_gives_defaults(self):
        snap = load_snapshot(None)
        assert snap == Snapshot()
        assert snap.user.level == 1
        assert snap.user.attributes == {"STR": 0, "INT": 0, "WIL": 0, "CRE": 0}

    def test_round_trip_preserves_document(self):
        doc = {
            "user": {
                "xp": 420, "level": 3, "gold": 55,
                "attributes": {"STR": 1, "INT": 2, "WIL": 3, "CRE": 0},
                "history": [{"id": "h1", "date": "2024-01-05T10:00:00", "action": "Hábito: Leer",
                             "xpGained": 20, "attribute": "INT"}],
                "inventory": ["shield"],
            },
            "config": {"habits": [{"id": "h1", "name": "Leer", "attribute": "INT"}],
                       "goals": {"sleep": 8, "phone": 1.5}, "rewards": [], "metrics": []},
            "entries": {"2024-01-05": {"habits": {"Leer": True}, "metrics": {"Horas de Sueño": 8},
                                       "tasks": {}, "review": {"win": "Todo bien"}, "completed": True}},
            "quests": [],
            "achievements": {"first_step": "2024-01-05T10:00:00"},
            "bosses": [],
            "notes": [{"id": "n1", "title": "Idea"}],
            "events": [],
        }
        snap = load_snapshot(doc)
        assert load_snapshot(snap.to_dict()) == snap
        assert snap.to_dict()["entries"] == doc["entries"]
        assert snap.to_dict()["user"] == doc["user"]

    def test_inventory_deduplicated(self):
        snap = load_snapshot({"user": {"inventory": ["shield", "shield", "double_xp"]}})
        assert snap.user.inventory == ("shield", "double_xp")

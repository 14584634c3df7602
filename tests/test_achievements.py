"""
tests/test_achievements.py — Achievement Catalog & Check Pipeline Tests
=========================================================================

Each predicate family is exercised against hand-built entry histories,
including the per-family "today" exemption rules.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from reflect.engine.achievements import (
    ACHIEVEMENTS,
    AchievementContext,
    check_achievements,
    get_achievement,
)
from reflect.engine.events import NotificationKind
from reflect.engine.snapshot import AppConfig, Entry, HabitConfig, Review, Snapshot, date_key

HABITS = ["Madrugar", "Leer", "Ejercicio"]
SLEEP = "Horas de Sueño"
PHONE = "Horas de Móvil"
TODAY = date(2024, 1, 10)  # a Wednesday
TODAY_KEY = date_key(TODAY)
NOW = datetime(2024, 1, 10, 22, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _entry(done=(), *, sleep=None, phone=None, completed=False, win=None, fail=None) -> Entry:
    metrics = {}
    if sleep is not None:
        metrics[SLEEP] = sleep
    if phone is not None:
        metrics[PHONE] = phone
    return Entry(
        habits={h: True for h in done},
        metrics=metrics,
        completed=completed,
        review=Review(win=win, fail=fail),
    )


def _snap(*days: Entry | None, achievements=None, goals=None) -> Snapshot:
    """Snapshot whose entries are today, yesterday, … (None leaves a gap)."""
    return Snapshot(
        config=AppConfig(
            habits=tuple(HabitConfig(id=h, name=h) for h in HABITS),
            goals=goals if goals is not None else {"sleep": 7.5, "phone": 2.0},
        ),
        entries={
            date_key(TODAY - timedelta(days=offset)): entry
            for offset, entry in enumerate(days)
            if entry is not None
        },
        achievements=achievements or {},
    )


def _unlocked(snapshot: Snapshot, key: str = TODAY_KEY) -> list[str]:
    _, ids = check_achievements(snapshot, key, today=TODAY, now=NOW)
    return ids


def _holds(achievement_id: str, snapshot: Snapshot, key: str = TODAY_KEY) -> bool:
    ctx = AchievementContext(snapshot=snapshot, date_key=key, today=TODAY)
    return get_achievement(achievement_id).condition(ctx)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class TestCatalog:
    def test_catalog_order(self):
        assert [a.id for a in ACHIEVEMENTS] == [
            "streak_3", "streak_7", "streak_14", "streak_21", "streak_30",
            "first_step", "early_bird_streak", "weekend_warrior", "no_fail",
            "perfect_day", "monk_mode", "digital_detox", "sleep_master",
            "iron_discipline", "journaling_streak",
        ]

    def test_get_unknown(self):
        assert get_achievement("nope") is None


# ---------------------------------------------------------------------------
# check_achievements pipeline
# ---------------------------------------------------------------------------
class TestCheckPipeline:
    def test_nothing_on_empty_history(self):
        snap = _snap()
        out, ids = check_achievements(snap, TODAY_KEY, today=TODAY, now=NOW)
        assert ids == []
        assert out is snap

    def test_first_step_unlocks_once(self, notifier):
        snap = _snap(_entry())
        out, ids = check_achievements(snap, TODAY_KEY, today=TODAY, now=NOW, notifier=notifier)
        assert ids == ["first_step"]
        assert out.achievements == {"first_step": NOW.isoformat()}

        later = NOW + timedelta(days=1)
        again, ids2 = check_achievements(out, TODAY_KEY, today=TODAY, now=later)
        assert ids2 == []
        assert again.achievements["first_step"] == NOW.isoformat()

    def test_celebration_per_unlock(self, notifier):
        snap = _snap(_entry(HABITS), _entry(HABITS), _entry(HABITS))
        _, ids = check_achievements(snap, TODAY_KEY, today=TODAY, now=NOW, notifier=notifier)
        unlocks = notifier.of(NotificationKind.ACHIEVEMENT)
        assert len(unlocks) == len(ids)
        assert all(n.celebrate for n in unlocks)
        assert unlocks[0].title == "¡Logro Desbloqueado: Calentando Motores!"

    def test_unlocks_follow_catalog_order(self):
        snap = _snap(_entry(HABITS), _entry(HABITS), _entry(HABITS))
        ids = _unlocked(snap)
        assert ids[:2] == ["streak_3", "first_step"]

    def test_input_snapshot_untouched(self):
        snap = _snap(_entry())
        check_achievements(snap, TODAY_KEY, today=TODAY, now=NOW)
        assert snap.achievements == {}

    def test_existing_unlock_not_rechecked(self):
        stamp = "2023-12-01T00:00:00+00:00"
        snap = _snap(_entry(), achievements={"first_step": stamp})
        out, ids = check_achievements(snap, TODAY_KEY, today=TODAY, now=NOW)
        assert "first_step" not in ids
        assert out.achievements["first_step"] == stamp


# ---------------------------------------------------------------------------
# Streak families
# ---------------------------------------------------------------------------
class TestStreaks:
    def test_streak_thresholds(self):
        full = _entry(HABITS)
        assert _holds("streak_3", _snap(None, full, full, full))
        assert not _holds("streak_7", _snap(None, full, full, full))
        assert _holds("streak_7", _snap(*([full] * 7)))

    def test_early_bird_with_today_pending(self):
        madrugar = _entry(["Madrugar"])
        snap = _snap(_entry(), *([madrugar] * 5))
        assert _holds("early_bird_streak", snap)

    def test_early_bird_missing_today_entry_stops(self):
        madrugar = _entry(["Madrugar"])
        assert not _holds("early_bird_streak", _snap(None, *([madrugar] * 5)))

    def test_early_bird_gap_stops(self):
        madrugar = _entry(["Madrugar"])
        snap = _snap(madrugar, madrugar, _entry(["Leer"]), madrugar, madrugar, madrugar)
        assert not _holds("early_bird_streak", snap)

    def test_iron_discipline_has_no_today_exemption(self):
        full = _entry(HABITS)
        assert _holds("iron_discipline", _snap(*([full] * 5)))
        assert not _holds("iron_discipline", _snap(_entry(HABITS[:2]), *([full] * 5)))

    def test_iron_discipline_needs_habits(self):
        snap = Snapshot(entries={date_key(TODAY - timedelta(days=i)): Entry() for i in range(5)})
        assert not _holds("iron_discipline", snap)

    def test_journaling_streak(self):
        wrote = _entry(win="Terminé el libro")
        assert _holds("journaling_streak", _snap(_entry(), *([wrote] * 7)))
        assert not _holds("journaling_streak", _snap(*([wrote] * 6)))

    def test_journaling_short_text_does_not_count(self):
        short = _entry(win="ok", fail="no")
        wrote = _entry(fail="Me dormí tarde")
        assert not _holds("journaling_streak", _snap(wrote, wrote, short, *([wrote] * 5)))


# ---------------------------------------------------------------------------
# Metric streaks
# ---------------------------------------------------------------------------
class TestMetricStreaks:
    def test_digital_detox(self):
        day = _entry(phone=1.5, completed=True)
        assert _holds("digital_detox", _snap(day, day, day))

    def test_digital_detox_open_today_stops(self):
        day = _entry(phone=1.5, completed=True)
        assert not _holds("digital_detox", _snap(_entry(phone=1.0), day, day, day))

    def test_digital_detox_missing_metric_stops(self):
        day = _entry(phone=1.5, completed=True)
        assert not _holds("digital_detox", _snap(day, _entry(completed=True), day, day))

    def test_digital_detox_threshold_is_strict(self):
        day = _entry(phone=2.0, completed=True)
        assert not _holds("digital_detox", _snap(day, day, day))

    def test_sleep_master_uses_goal(self):
        day = _entry(sleep=8.0, completed=True)
        assert _holds("sleep_master", _snap(day, day, day))
        assert not _holds("sleep_master", _snap(day, day, day, goals={"sleep": 8.5}))

    def test_sleep_master_default_goal(self):
        day = _entry(sleep=7.5, completed=True)
        assert _holds("sleep_master", _snap(day, day, day, goals={}))


# ---------------------------------------------------------------------------
# Single-day predicates
# ---------------------------------------------------------------------------
class TestSingleDay:
    @pytest.mark.parametrize(
        "fail, expected",
        [("", True), ("   ", True), ("Ninguno hoy", True), ("NINGUNO", True),
         ("Llegué tarde", False), (None, False)],
    )
    def test_no_fail(self, fail, expected):
        assert _holds("no_fail", _snap(_entry(completed=True, fail=fail))) is expected

    def test_no_fail_requires_closed_day(self):
        assert not _holds("no_fail", _snap(_entry(completed=False, fail="")))

    def test_perfect_day(self):
        snap = _snap(_entry(HABITS, sleep=7.5, phone=2.0, completed=True))
        assert _holds("perfect_day", snap)

    @pytest.mark.parametrize(
        "entry",
        [
            _entry(HABITS[:2], sleep=8, phone=1, completed=True),
            _entry(HABITS, sleep=7, phone=1, completed=True),
            _entry(HABITS, sleep=8, phone=2.5, completed=True),
            _entry(HABITS, sleep=8, phone=1, completed=False),
            _entry(HABITS, sleep=8, completed=True),
        ],
    )
    def test_perfect_day_failures(self, entry):
        assert not _holds("perfect_day", _snap(entry))

    def test_perfect_day_uses_reference_date(self):
        perfect = _entry(HABITS, sleep=8, phone=1, completed=True)
        snap = _snap(_entry(), perfect)
        yesterday = date_key(TODAY - timedelta(days=1))
        assert _holds("perfect_day", snap, yesterday)
        assert not _holds("perfect_day", snap, TODAY_KEY)

    def test_monk_mode(self):
        assert _holds("monk_mode", _snap(_entry(phone=0.5, completed=True)))
        assert not _holds("monk_mode", _snap(_entry(phone=1.0, completed=True)))
        assert not _holds("monk_mode", _snap(_entry(phone=0.5)))

    def test_weekend_warrior(self):
        # TODAY is Wednesday; Sunday is 3 days back, Saturday 4
        full = _entry(HABITS)
        assert _holds("weekend_warrior", _snap(None, None, None, full, full))
        assert not _holds("weekend_warrior", _snap(None, None, None, full, _entry(HABITS[:1])))
        assert not _holds("weekend_warrior", _snap(None, None, None, full))

    def test_weekend_warrior_needs_saturday_entry(self):
        full = _entry(HABITS)
        assert not _holds("weekend_warrior", _snap(None, None, None, full, None))

    def test_weekend_warrior_needs_every_habit_on_sunday(self):
        full = _entry(HABITS)
        partial = _entry(HABITS[:-1])
        assert not _holds("weekend_warrior", _snap(None, None, None, partial, full))

    def test_weekend_warrior_ignores_weekends_outside_last_week(self):
        # Sunday 2023-12-31 is 10 days before TODAY
        full = _entry(HABITS)
        days = [None] * 10 + [full, full]
        assert not _holds("weekend_warrior", _snap(*days))

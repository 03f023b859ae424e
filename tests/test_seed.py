"""Tests for the seed command."""

from datetime import date, time

from agency_booking.scripts.seed import seed


def test_seed_defaults_and_holidays(db, catalog):
    result = seed(db)
    assert result == {"slots": 30, "blocked_dates": 3, "weekend_slots": 0}
    assert [b.date for b in catalog.list_blocked_dates()] == [
        date(2024, 12, 25), date(2024, 12, 31), date(2025, 1, 1),
    ]


def test_seed_is_rerunnable(db):
    seed(db)
    assert seed(db) == {"slots": 0, "blocked_dates": 0, "weekend_slots": 0}


def test_weekend_slots_are_inactive(db, catalog):
    seed(db, with_weekend=True)
    assert catalog.slots_for_day_of_week(6) == []
    assert catalog.slots_for_day_of_week(0) == []
    weekend = [s for s in catalog.list_slots() if s.day_of_week in (0, 6)]
    assert len(weekend) == 4
    assert not any(s.is_active for s in weekend)


def test_weekend_slot_already_switched_on_is_kept(db, catalog):
    catalog.upsert_slot(6, time(10, 0), time(11, 0), active=True)
    result = seed(db, with_weekend=True)
    assert result["weekend_slots"] == 3
    assert [w.start for w in catalog.slots_for_day_of_week(6)] == [time(10, 0)]

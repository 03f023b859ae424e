"""Tests for weekly slot definitions and blocked dates."""

from datetime import date, time

import pytest

from agency_booking.errors import NotFoundError, ValidationError
from agency_booking.services.slot_catalog import DEFAULT_WINDOWS

from tests.conftest import MONDAY


class TestDefaultSlots:
    @pytest.mark.parametrize("day", [1, 2, 3, 4, 5])
    def test_unseeded_weekday_gets_six_defaults(self, catalog, day):
        windows = catalog.slots_for_day_of_week(day)
        assert [(w.start, w.end) for w in windows] == list(DEFAULT_WINDOWS)
        assert [w.start.hour for w in windows] == [9, 10, 11, 14, 15, 16]

    @pytest.mark.parametrize("day", [0, 6])
    def test_unseeded_weekend_is_empty(self, catalog, day):
        assert catalog.slots_for_day_of_week(day) == []

    def test_seeded_rows_replace_defaults(self, catalog):
        catalog.upsert_slot(2, time(13, 0), time(14, 0))
        windows = catalog.slots_for_day_of_week(2)
        assert [(w.start, w.end) for w in windows] == [(time(13, 0), time(14, 0))]

    def test_all_inactive_rows_mean_no_slots(self, catalog):
        catalog.upsert_slot(3, time(9, 0), time(10, 0), active=False)
        assert catalog.slots_for_day_of_week(3) == []

    def test_slots_returned_in_start_order(self, catalog):
        catalog.upsert_slot(1, time(15, 0), time(16, 0))
        catalog.upsert_slot(1, time(8, 0), time(9, 0))
        assert [w.start for w in catalog.slots_for_day_of_week(1)] == [time(8, 0), time(15, 0)]

    def test_initialize_default_slots_is_idempotent(self, catalog):
        assert catalog.initialize_default_slots() == 30
        assert catalog.initialize_default_slots() == 0
        assert len(catalog.list_slots()) == 30


class TestUpsertSlot:
    def test_updates_existing_row(self, catalog):
        catalog.upsert_slot(4, time(9, 0), time(10, 0))
        slot = catalog.upsert_slot(4, time(9, 0), time(9, 30), active=False)
        assert slot.end_time == time(9, 30)
        assert slot.is_active is False
        assert len(catalog.list_slots()) == 1

    def test_rejects_bad_day(self, catalog):
        with pytest.raises(ValidationError):
            catalog.upsert_slot(7, time(9, 0), time(10, 0))

    def test_rejects_inverted_window(self, catalog):
        with pytest.raises(ValidationError):
            catalog.upsert_slot(1, time(10, 0), time(9, 0))


class TestBlockedDates:
    def test_all_day_block_drops_times(self, catalog):
        blocked = catalog.block_date(MONDAY, "Team offsite", all_day=True, start=time(9, 0), end=time(10, 0))
        assert blocked.all_day is True
        assert blocked.start_time is None and blocked.end_time is None
        assert [b.id for b in catalog.blocked_windows_for_date(MONDAY)] == [blocked.id]

    def test_partial_block_needs_both_times(self, catalog):
        with pytest.raises(ValidationError):
            catalog.block_date(MONDAY, all_day=False, start=time(9, 0))

    def test_partial_block_start_before_end(self, catalog):
        with pytest.raises(ValidationError):
            catalog.block_date(MONDAY, all_day=False, start=time(11, 0), end=time(10, 0))

    def test_list_blocked_dates_by_range(self, catalog):
        catalog.block_date(date(2024, 12, 25), "Christmas Day")
        catalog.block_date(date(2025, 1, 1), "New Year's Day")
        found = catalog.list_blocked_dates(start=date(2024, 12, 31))
        assert [b.date for b in found] == [date(2025, 1, 1)]

    def test_unblock_date(self, catalog):
        blocked = catalog.block_date(MONDAY)
        catalog.unblock_date(blocked.id)
        assert catalog.blocked_windows_for_date(MONDAY) == []

    def test_unblock_unknown_id(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.unblock_date(9999)

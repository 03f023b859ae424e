"""Tests for booking persistence and the status lifecycle."""

import re
from datetime import date, datetime, time

import pytest
import pytz

from agency_booking import models
from agency_booking.config import settings
from agency_booking.errors import InvalidTransitionError, NotFoundError, SlotTakenError, StorageError
from agency_booking.services import ledger as ledger_module
from agency_booking.models import BookingStatus, ConsultationType
from agency_booking.services.ledger import append_note, generate_booking_id
from agency_booking.services.zoom import MeetingDetails

from tests.conftest import MONDAY, SATURDAY, make_input


class FrozenDateTime(datetime):
    """Clock pinned to 2025-03-10 11:00 UTC, which is 7:00 AM in New York."""

    @classmethod
    def now(cls, tz=None):
        instant = datetime(2025, 3, 10, 11, 0, tzinfo=pytz.UTC)
        return instant.astimezone(tz) if tz is not None else instant.replace(tzinfo=None)


def _fixed_ids(monkeypatch, *ids):
    queue = iter(ids)
    monkeypatch.setattr(ledger_module, "generate_booking_id", lambda: next(queue))


def test_booking_id_format():
    assert re.fullmatch(r"BOOK-[0-9A-Z]+-[0-9A-Z]{5}", generate_booking_id())


def test_append_note():
    assert append_note(None, "first") == "first"
    assert append_note("first", "second") == "first\nsecond"


class TestCreate:
    def test_creates_confirmed_booking(self, ledger):
        b = ledger.create(make_input(requested_time=time(14, 0)))
        assert b.status == BookingStatus.confirmed
        assert b.requested_time == "2:00 PM"
        assert b.scheduled_at == datetime(2025, 3, 10, 14, 0)
        assert b.consultation_type == ConsultationType.video

    def test_same_slot_rejected_with_fresh_list(self, ledger):
        ledger.create(make_input())
        with pytest.raises(SlotTakenError) as exc:
            ledger.create(make_input(email="grace@example.com"))
        slots = {s["time"]: s["available"] for s in exc.value.available_slots}
        assert slots["9:00 AM"] is False
        assert slots["10:00 AM"] is True

    def test_never_two_live_bookings_per_slot(self, ledger, db):
        ledger.create(make_input())
        with pytest.raises(SlotTakenError):
            ledger.create(make_input(name="Grace Hopper"))
        live = db.query(models.Booking).filter(models.Booking.status != BookingStatus.cancelled).count()
        assert live == 1

    def test_unique_index_backstops_a_race(self, ledger, db):
        first = ledger.create(make_input())
        # Simulate a writer that checked availability before ``first`` committed
        ledger.resolver.is_slot_available = lambda d, t: True
        with pytest.raises(SlotTakenError):
            ledger.create(make_input(name="Grace Hopper"))
        assert ledger.find_by_booking_id(first.booking_id).status == BookingStatus.confirmed

    def test_booking_id_collision_is_retried(self, ledger, monkeypatch):
        _fixed_ids(monkeypatch, "BOOK-M7K2P-AAAAA", "BOOK-M7K2P-AAAAA", "BOOK-M7K2Q-BBBBB")
        first = ledger.create(make_input())
        second = ledger.create(make_input(requested_time=time(10, 0), name="Grace Hopper"))
        assert first.booking_id == "BOOK-M7K2P-AAAAA"
        assert second.booking_id == "BOOK-M7K2Q-BBBBB"
        assert second.requested_time == "10:00 AM"

    def test_repeated_id_collision_is_a_storage_error(self, ledger, db, monkeypatch):
        _fixed_ids(monkeypatch, *["BOOK-M7K2P-AAAAA"] * 3)
        ledger.create(make_input())
        with pytest.raises(StorageError) as exc:
            ledger.create(make_input(requested_time=time(10, 0), name="Grace Hopper"))
        assert not isinstance(exc.value, SlotTakenError)
        assert db.query(models.Booking).count() == 1

    def test_slot_reusable_after_cancel(self, ledger):
        b = ledger.create(make_input())
        ledger.update_status(b.booking_id, BookingStatus.cancelled)
        again = ledger.create(make_input(name="Grace Hopper"))
        assert again.status == BookingStatus.confirmed

    def test_weekend_rejected(self, ledger):
        with pytest.raises(SlotTakenError):
            ledger.create(make_input(requested_date=SATURDAY, requested_time=time(10, 0)))


class TestStatus:
    def test_find_unknown(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.find_by_booking_id("BOOK-NOPE-00000")

    @pytest.mark.parametrize("target", [BookingStatus.completed, BookingStatus.no_show, BookingStatus.cancelled])
    def test_confirmed_moves(self, ledger, target):
        b = ledger.create(make_input())
        updated = ledger.update_status(b.booking_id, target)
        assert updated.status == target
        assert f"Status confirmed -> {target.value}" in updated.notes

    @pytest.mark.parametrize("terminal", [BookingStatus.completed, BookingStatus.no_show, BookingStatus.cancelled])
    def test_terminal_states_stay_put(self, ledger, terminal):
        b = ledger.create(make_input())
        ledger.update_status(b.booking_id, terminal)
        with pytest.raises(InvalidTransitionError):
            ledger.update_status(b.booking_id, BookingStatus.confirmed)

    def test_custom_note_is_appended(self, ledger):
        b = ledger.create(make_input())
        updated = ledger.update_status(b.booking_id, BookingStatus.completed, "Great call")
        assert updated.notes.endswith("Great call")


class TestReschedule:
    def test_moves_same_record(self, ledger):
        b = ledger.create(make_input())
        moved = ledger.reschedule(b.booking_id, date(2025, 3, 11), time(15, 0))
        assert moved.id == b.id
        assert moved.requested_date == date(2025, 3, 11)
        assert moved.requested_time == "3:00 PM"
        assert moved.scheduled_at == datetime(2025, 3, 11, 15, 0)
        assert "Rescheduled from March 10, 2025 at 9:00 AM" in moved.notes

    def test_taken_slot_leaves_original_untouched(self, ledger):
        b = ledger.create(make_input())
        ledger.create(make_input(requested_time=time(10, 0), name="Grace Hopper"))
        with pytest.raises(SlotTakenError) as exc:
            ledger.reschedule(b.booking_id, MONDAY, time(10, 0))
        assert exc.value.message == "The selected time slot is not available"
        same = ledger.find_by_booking_id(b.booking_id)
        assert (same.requested_date, same.requested_time, same.status) == (MONDAY, "9:00 AM", BookingStatus.confirmed)

    def test_same_slot_leaves_booking_unchanged(self, ledger):
        b = ledger.create(make_input())
        notes_before = b.notes
        same = ledger.reschedule(b.booking_id, MONDAY, time(9, 0))
        assert (same.requested_date, same.requested_time) == (MONDAY, "9:00 AM")
        assert same.notes == notes_before

    def test_cancelled_cannot_be_rescheduled(self, ledger):
        b = ledger.create(make_input())
        ledger.update_status(b.booking_id, BookingStatus.cancelled)
        with pytest.raises(InvalidTransitionError):
            ledger.reschedule(b.booking_id, date(2025, 3, 11), time(9, 0))


class TestEnrichment:
    def test_attach_and_clear_meeting(self, ledger):
        b = ledger.create(make_input())
        meeting = MeetingDetails("https://zoom.us/j/123", 123, "Abc23xyz", "https://zoom.us/s/123")
        with_meeting = ledger.attach_meeting(b.booking_id, meeting)
        assert with_meeting.meeting_id == 123
        assert "Zoom Meeting ID: 123, Password: Abc23xyz" in with_meeting.notes

        cleared = ledger.attach_meeting(b.booking_id, None)
        assert cleared.meeting_url is None and cleared.meeting_id is None
        assert not cleared.has_meeting

    def test_attach_calendar_event(self, ledger):
        b = ledger.create(make_input())
        assert ledger.attach_calendar_event(b.booking_id, "evt-9").calendar_event_id == "evt-9"


class TestQueries:
    def test_bookings_on_and_stats(self, ledger):
        a = ledger.create(make_input())
        ledger.create(make_input(requested_time=time(10, 0), name="Grace Hopper"))
        ledger.update_status(a.booking_id, BookingStatus.cancelled)

        assert len(ledger.bookings_on(MONDAY)) == 2
        assert len(ledger.bookings_on(MONDAY, include_cancelled=False)) == 1

        stats = ledger.stats(now=datetime(2025, 3, 1))
        assert stats["total"] == 2
        assert stats["upcoming"] == 1
        assert stats["by_status"]["cancelled"] == 1
        assert stats["by_status"]["confirmed"] == 1

    def test_upcoming_window(self, ledger):
        ledger.create(make_input())
        ledger.create(make_input(requested_date=date(2025, 3, 24)))
        found = ledger.upcoming(days=7, now=datetime(2025, 3, 9))
        assert [b.requested_date for b in found] == [MONDAY]

    def test_now_is_agency_wall_clock(self, ledger, monkeypatch):
        monkeypatch.setattr(settings, "TIMEZONE", "America/New_York")
        monkeypatch.setattr(ledger_module, "datetime", FrozenDateTime)
        # 9:00 AM New York is still two hours away, though 11:00 has passed in UTC
        b = ledger.create(make_input())

        assert ledger_module.local_now() == datetime(2025, 3, 10, 7, 0)
        assert [u.booking_id for u in ledger.upcoming(days=7)] == [b.booking_id]
        assert ledger.stats()["upcoming"] == 1

# agency_booking/services/ledger.py
from __future__ import annotations
import logging
import secrets
import string
import time as _time
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..errors import InvalidTransitionError, NotFoundError, SlotTakenError, StorageError
from ..config import settings
from ..models import ALLOWED_TRANSITIONS, BookingStatus, ConsultationType
from ..timeutils import combine_local, format_display_time, format_long_date, local_tz
from .availability import AvailabilityResolver
from .zoom import MeetingDetails

logger = logging.getLogger(__name__)

INITIAL_STATUS = BookingStatus.confirmed
RESCHEDULABLE = frozenset({BookingStatus.pending, BookingStatus.confirmed})

_BASE36 = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    out = ""
    while True:
        n, rem = divmod(n, 36)
        out = _BASE36[rem] + out
        if n == 0:
            return out


def generate_booking_id() -> str:
    """``BOOK-<ms timestamp base36>-<5 random base36>``, upper-case."""
    stamp = _base36(int(_time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"BOOK-{stamp}-{suffix}"


def _utcstamp() -> str:
    return datetime.utcnow().replace(microsecond=0).isoformat() + "Z"


def local_now() -> datetime:
    """Naive wall-clock "now" in TIMEZONE, comparable with ``Booking.scheduled_at``."""
    return datetime.now(local_tz(settings.TIMEZONE)).replace(tzinfo=None)


class BookingIdTakenError(StorageError):
    """A generated booking id collided with an existing row."""


def append_note(existing: Optional[str], line: str) -> str:
    return f"{existing}\n{line}" if existing else line


@dataclass
class BookingInput:
    name: str
    email: str
    phone: str
    requested_date: date
    requested_time: time
    consultation_type: ConsultationType
    project_details: str
    company: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None


class BookingLedger:
    """Authoritative store of bookings and their status lifecycle."""

    def __init__(self, db: Session, resolver: Optional[AvailabilityResolver] = None):
        self.db = db
        self.resolver = resolver or AvailabilityResolver(db)

    # ====== Lookups ======
    def find_by_booking_id(self, booking_id: str) -> models.Booking:
        try:
            booking = self.db.scalars(
                select(models.Booking).where(models.Booking.booking_id == booking_id)
            ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read booking: {e}") from e
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def bookings_on(self, d: date, include_cancelled: bool = True) -> List[models.Booking]:
        q = select(models.Booking).where(models.Booking.requested_date == d).order_by(models.Booking.scheduled_at)
        if not include_cancelled:
            q = q.where(models.Booking.status != BookingStatus.cancelled)
        return list(self.db.scalars(q).all())

    def upcoming(self, days: int = 7, now: Optional[datetime] = None) -> List[models.Booking]:
        start = now or local_now()
        return list(self.db.scalars(
            select(models.Booking)
            .where(models.Booking.scheduled_at >= start)
            .where(models.Booking.scheduled_at <= start + timedelta(days=days))
            .where(models.Booking.status == BookingStatus.confirmed)
            .order_by(models.Booking.scheduled_at)
        ).all())

    def stats(self, now: Optional[datetime] = None) -> dict:
        counts = dict(self.db.execute(
            select(models.Booking.status, func.count(models.Booking.id)).group_by(models.Booking.status)
        ).all())
        upcoming = self.db.scalar(
            select(func.count(models.Booking.id))
            .where(models.Booking.status == BookingStatus.confirmed)
            .where(models.Booking.scheduled_at >= (now or local_now()))
        )
        return {
            "total": sum(counts.values()),
            "upcoming": upcoming or 0,
            "by_status": {s.value: counts.get(s, 0) for s in BookingStatus},
        }

    # ====== Writes ======
    def create(self, data: BookingInput) -> models.Booking:
        d, t = data.requested_date, data.requested_time
        # Checked again inside the write; the unique index settles any race after this
        if not self.resolver.is_slot_available(d, t):
            raise SlotTakenError(available_slots=self.resolver.snapshot(d))

        # One retry on an id collision; a second one is a storage problem
        for attempt in (1, 2):
            booking = models.Booking(
                booking_id=generate_booking_id(),
                name=data.name,
                email=data.email,
                phone=data.phone,
                company=data.company,
                requested_date=d,
                requested_time=format_display_time(t),
                scheduled_at=combine_local(d, t),
                consultation_type=data.consultation_type,
                project_details=data.project_details,
                budget=data.budget,
                timeline=data.timeline,
                status=INITIAL_STATUS,
            )
            self.db.add(booking)
            try:
                self._commit(d, "create booking")
                break
            except BookingIdTakenError:
                if attempt == 2:
                    raise
                logger.warning("Booking id %s already in use; generating a new one", booking.booking_id)
        self.db.refresh(booking)
        logger.info("Booking created: %s %s %s (%s)", booking.booking_id, d, booking.requested_time,
                    booking.consultation_type.value)
        return booking

    def ensure_transition(self, booking: models.Booking, new_status: BookingStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS.get(booking.status, frozenset()):
            raise InvalidTransitionError(
                f"Cannot move booking {booking.booking_id} from {booking.status.value} to {new_status.value}"
            )

    def update_status(self, booking_id: str, new_status: BookingStatus, notes: Optional[str] = None) -> models.Booking:
        booking = self.find_by_booking_id(booking_id)
        self.ensure_transition(booking, new_status)

        old = booking.status
        booking.status = new_status
        booking.notes = append_note(booking.notes, notes or f"Status {old.value} -> {new_status.value} at: {_utcstamp()}")
        self._commit(booking.requested_date, "update booking status")
        self.db.refresh(booking)
        logger.info("Booking %s: %s -> %s", booking_id, old.value, new_status.value)
        return booking

    def reschedule(self, booking_id: str, new_date: date, new_time: time) -> models.Booking:
        booking = self.find_by_booking_id(booking_id)
        if booking.status not in RESCHEDULABLE:
            raise InvalidTransitionError(
                f"Cannot reschedule booking {booking_id} with status {booking.status.value}"
            )
        if new_date == booking.requested_date and format_display_time(new_time) == booking.requested_time:
            logger.info("Booking %s already at %s %s; nothing to reschedule", booking_id, new_date,
                        booking.requested_time)
            return booking
        if not self.resolver.is_slot_available(new_date, new_time):
            raise SlotTakenError(
                "The selected time slot is not available",
                available_slots=self.resolver.snapshot(new_date),
            )

        old_date, old_time = booking.requested_date, booking.requested_time
        booking.requested_date = new_date
        booking.requested_time = format_display_time(new_time)
        booking.scheduled_at = combine_local(new_date, new_time)
        booking.notes = append_note(booking.notes, f"Rescheduled from {format_long_date(old_date)} at {old_time}")
        self._commit(new_date, "reschedule booking")
        self.db.refresh(booking)
        logger.info("Booking %s rescheduled: %s %s -> %s %s", booking_id, old_date, old_time,
                    new_date, booking.requested_time)
        return booking

    def attach_meeting(self, booking_id: str, meeting: Optional[MeetingDetails]) -> models.Booking:
        """Second-phase update; ``None`` clears a stale meeting reference."""
        booking = self.find_by_booking_id(booking_id)
        booking.meeting_url = meeting.join_url if meeting else None
        booking.meeting_id = meeting.meeting_id if meeting else None
        booking.meeting_password = meeting.password if meeting else None
        booking.meeting_host_url = meeting.host_url if meeting else None
        if meeting:
            booking.notes = append_note(booking.notes, meeting.note())
        self._commit(booking.requested_date, "attach meeting")
        self.db.refresh(booking)
        return booking

    def attach_calendar_event(self, booking_id: str, event_id: Optional[str]) -> models.Booking:
        booking = self.find_by_booking_id(booking_id)
        booking.calendar_event_id = event_id
        self._commit(booking.requested_date, "attach calendar event")
        self.db.refresh(booking)
        return booking

    def _commit(self, d: date, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            detail = str(e.orig)
            if "booking_id" in detail:
                raise BookingIdTakenError(f"Could not {action}: booking id already in use") from e
            if "requested_date" in detail or "uq_bookings_active_slot" in detail:
                logger.warning("Slot conflict on %s for %s: %s", action, d, detail)
                raise SlotTakenError(available_slots=self.resolver.snapshot(d)) from e
            logger.error("Integrity failure on %s: %s", action, detail)
            raise StorageError(f"Could not {action}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Storage failure on %s: %s", action, e)
            raise StorageError(f"Could not {action}") from e

# agency_booking/services/availability.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..config import settings
from ..errors import StorageError
from ..timeutils import day_of_week, format_display_time
from .slot_catalog import SlotCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAvailability:
    time: str
    available: bool
    start: time

    def as_dict(self) -> dict:
        return {"time": self.time, "available": self.available}


def _blocks_slot(blocked: models.BlockedDate, start: time) -> bool:
    if blocked.all_day:
        return True
    if blocked.start_time is None or blocked.end_time is None:
        return False
    return blocked.start_time <= start < blocked.end_time


class AvailabilityResolver:
    """Joins the slot catalog, blocked dates and live bookings for one date."""

    def __init__(self, db: Session, catalog: Optional[SlotCatalog] = None,
                 allow_off_schedule: Optional[bool] = None):
        self.db = db
        self.catalog = catalog or SlotCatalog(db)
        self.allow_off_schedule = (
            settings.ALLOW_OFF_SCHEDULE_BOOKINGS if allow_off_schedule is None else allow_off_schedule
        )

    def booked_labels(self, d: date) -> set[str]:
        """Display labels already held by non-cancelled bookings on ``d``."""
        try:
            rows = self.db.scalars(
                select(models.Booking.requested_time)
                .where(models.Booking.requested_date == d)
                .where(models.Booking.status != models.BookingStatus.cancelled)
            ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read bookings: {e}") from e
        return set(rows)

    def available_slots(self, d: date) -> List[SlotAvailability]:
        windows = self.catalog.slots_for_day_of_week(day_of_week(d))
        if not windows:
            return []

        blocked = self.catalog.blocked_windows_for_date(d)
        booked = self.booked_labels(d)

        out = []
        for w in windows:
            label = format_display_time(w.start)
            taken = any(_blocks_slot(b, w.start) for b in blocked) or label in booked
            out.append(SlotAvailability(time=label, available=not taken, start=w.start))
        logger.debug("Availability %s: %s", d, [(s.time, s.available) for s in out])
        return out

    def is_slot_available(self, d: date, start: time) -> bool:
        label = format_display_time(start)
        slots = self.available_slots(d)
        for s in slots:
            if s.time == label:
                return s.available

        if not self.allow_off_schedule:
            logger.info("Rejected off-schedule request %s %s", d, label)
            return False

        # Compatibility mode: the time is outside the schedule, so only blocks and conflicts count
        blocked = self.catalog.blocked_windows_for_date(d)
        if any(_blocks_slot(b, start) for b in blocked):
            return False
        return label not in self.booked_labels(d)

    def snapshot(self, d: date) -> list[dict]:
        """Fresh availability list attached to slot-conflict responses."""
        return [s.as_dict() for s in self.available_slots(d)]

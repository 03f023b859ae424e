# agency_booking/services/slot_catalog.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

# Mon-Fri fallback used until an administrator seeds slot_definitions
WEEKDAYS = (1, 2, 3, 4, 5)
DEFAULT_WINDOWS: tuple[tuple[time, time], ...] = (
    (time(9, 0), time(10, 0)),
    (time(10, 0), time(11, 0)),
    (time(11, 0), time(12, 0)),
    (time(14, 0), time(15, 0)),
    (time(15, 0), time(16, 0)),
    (time(16, 0), time(17, 0)),
)


@dataclass(frozen=True)
class SlotWindow:
    day_of_week: int
    start: time
    end: time


class SlotCatalog:
    """Recurring weekly slots plus ad-hoc blocked dates."""

    def __init__(self, db: Session):
        self.db = db

    # ====== Reads used by the availability resolver ======
    def slots_for_day_of_week(self, day: int) -> List[SlotWindow]:
        try:
            rows = self.db.scalars(
                select(models.SlotDefinition).where(models.SlotDefinition.day_of_week == day)
            ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read slot definitions: {e}") from e

        if not rows:
            if day in WEEKDAYS:
                return [SlotWindow(day, start, end) for start, end in DEFAULT_WINDOWS]
            return []

        active = [SlotWindow(r.day_of_week, r.start_time, r.end_time) for r in rows if r.is_active]
        return sorted(active, key=lambda w: w.start)

    def blocked_windows_for_date(self, d: date) -> List[models.BlockedDate]:
        try:
            return list(self.db.scalars(
                select(models.BlockedDate).where(models.BlockedDate.date == d)
            ).all())
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read blocked dates: {e}") from e

    # ====== Administrative configuration ======
    def list_slots(self) -> List[models.SlotDefinition]:
        return list(self.db.scalars(
            select(models.SlotDefinition).order_by(
                models.SlotDefinition.day_of_week, models.SlotDefinition.start_time
            )
        ).all())

    def upsert_slot(self, day: int, start: time, end: time, active: bool = True) -> models.SlotDefinition:
        if not 0 <= day <= 6:
            raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")
        if start >= end:
            raise ValidationError("Slot start time must be before its end time.")

        slot = self.db.scalars(
            select(models.SlotDefinition).where(
                models.SlotDefinition.day_of_week == day,
                models.SlotDefinition.start_time == start,
            )
        ).first()
        if slot is None:
            slot = models.SlotDefinition(day_of_week=day, start_time=start, end_time=end, is_active=active)
            self.db.add(slot)
        else:
            slot.end_time = end
            slot.is_active = active
        self._commit()
        self.db.refresh(slot)
        return slot

    def initialize_default_slots(self) -> int:
        """Insert the Mon-Fri defaults that are missing; existing rows are left alone."""
        created = 0
        for day in WEEKDAYS:
            for start, end in DEFAULT_WINDOWS:
                exists = self.db.scalars(
                    select(models.SlotDefinition.id).where(
                        models.SlotDefinition.day_of_week == day,
                        models.SlotDefinition.start_time == start,
                    )
                ).first()
                if exists is None:
                    self.db.add(models.SlotDefinition(day_of_week=day, start_time=start, end_time=end, is_active=True))
                    created += 1
        self._commit()
        logger.info("Default slots initialized: %s created", created)
        return created

    def block_date(self, d: date, reason: Optional[str] = None, all_day: bool = True,
                   start: Optional[time] = None, end: Optional[time] = None) -> models.BlockedDate:
        if not all_day:
            if start is None or end is None:
                raise ValidationError("A partial-day block needs both a start and an end time.")
            if start >= end:
                raise ValidationError("Blocked window start must be before its end.")
        else:
            start = end = None

        blocked = models.BlockedDate(date=d, reason=reason, all_day=all_day, start_time=start, end_time=end)
        self.db.add(blocked)
        self._commit()
        self.db.refresh(blocked)
        logger.info("Date blocked: %s all_day=%s window=%s-%s reason=%s", d, all_day, start, end, reason)
        return blocked

    def list_blocked_dates(self, start: Optional[date] = None, end: Optional[date] = None) -> List[models.BlockedDate]:
        q = select(models.BlockedDate).order_by(models.BlockedDate.date, models.BlockedDate.start_time)
        if start:
            q = q.where(models.BlockedDate.date >= start)
        if end:
            q = q.where(models.BlockedDate.date <= end)
        return list(self.db.scalars(q).all())

    def unblock_date(self, blocked_id: int) -> None:
        blocked = self.db.get(models.BlockedDate, blocked_id)
        if blocked is None:
            raise NotFoundError("Blocked date not found")
        self.db.delete(blocked)
        self._commit()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Could not save slot configuration: {e}") from e

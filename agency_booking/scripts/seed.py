# agency_booking/scripts/seed.py
"""
Seed slot definitions and sample blocked dates.

    agency-booking-seed                 # Mon-Fri defaults + holiday blocks
    agency-booking-seed --with-weekend  # also inactive Sat/Sun slots, ready to switch on
"""
from __future__ import annotations
import argparse
import logging
from datetime import date, time

from sqlalchemy import select

from .. import models
from ..database import SessionLocal, init_db
from ..services.slot_catalog import SlotCatalog

logger = logging.getLogger(__name__)

HOLIDAYS = (
    (date(2024, 12, 25), "Christmas Day"),
    (date(2024, 12, 31), "New Year's Eve"),
    (date(2025, 1, 1), "New Year's Day"),
)

# (day_of_week, start, end); stored inactive
WEEKEND_SLOTS = (
    (6, time(10, 0), time(11, 0)),
    (6, time(11, 0), time(12, 0)),
    (0, time(14, 0), time(15, 0)),
    (0, time(15, 0), time(16, 0)),
)


def seed(db, with_weekend: bool = False) -> dict:
    catalog = SlotCatalog(db)
    created_slots = catalog.initialize_default_slots()

    blocked = 0
    for d, reason in HOLIDAYS:
        exists = db.scalars(
            select(models.BlockedDate.id).where(models.BlockedDate.date == d, models.BlockedDate.all_day.is_(True))
        ).first()
        if exists is None:
            catalog.block_date(d, reason=reason, all_day=True)
            blocked += 1

    weekend = 0
    if with_weekend:
        existing = {(s.day_of_week, s.start_time) for s in catalog.list_slots()}
        for day, start, end in WEEKEND_SLOTS:
            # Leave slots an operator already switched on alone
            if (day, start) in existing:
                continue
            catalog.upsert_slot(day, start, end, active=False)
            weekend += 1

    return {"slots": created_slots, "blocked_dates": blocked, "weekend_slots": weekend}


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Seed consultation slots and blocked dates.")
    parser.add_argument("--with-weekend", action="store_true", help="also add inactive weekend slots")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    init_db()
    db = SessionLocal()
    try:
        result = seed(db, with_weekend=args.with_weekend)
    finally:
        db.close()
    logger.info("Seed complete: %s", result)


if __name__ == "__main__":
    main()

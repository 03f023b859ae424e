# agency_booking/dependencies.py
"""FastAPI dependency wiring. Tests swap these out via ``app.dependency_overrides``."""
from __future__ import annotations
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .services.availability import AvailabilityResolver
from .services.calendar_sync import CalendarMirror, get_calendar_mirror
from .services.ledger import BookingLedger
from .services.notifications import NotificationDispatcher, get_notifier
from .services.orchestrator import BookingOrchestrator
from .services.slot_catalog import SlotCatalog
from .services.zoom import get_zoom_client


def get_provisioner():
    return get_zoom_client()


def get_calendar() -> Optional[CalendarMirror]:
    return get_calendar_mirror()


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_notifier())


def get_catalog(db: Session = Depends(get_db)) -> SlotCatalog:
    return SlotCatalog(db)


def get_resolver(db: Session = Depends(get_db)) -> AvailabilityResolver:
    return AvailabilityResolver(db)


def get_ledger(db: Session = Depends(get_db)) -> BookingLedger:
    return BookingLedger(db)


def get_orchestrator(
    ledger: BookingLedger = Depends(get_ledger),
    provisioner=Depends(get_provisioner),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    calendar: Optional[CalendarMirror] = Depends(get_calendar),
) -> BookingOrchestrator:
    return BookingOrchestrator(ledger, provisioner, dispatcher, calendar)


def require_admin(x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = (settings.ADMIN_TOKEN or "").strip()
    provided = (x_admin_token or "").strip()
    if not expected:
        raise HTTPException(status_code=403, detail="ADMIN_TOKEN not configured")
    if provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")

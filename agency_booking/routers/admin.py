# agency_booking/routers/admin.py
from __future__ import annotations
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..config import settings
from ..dependencies import get_catalog, get_ledger, get_orchestrator, require_admin
from ..services.ledger import BookingLedger
from ..services.orchestrator import BookingOrchestrator
from ..services.slot_catalog import SlotCatalog
from ..timeutils import parse_date
from .consultations import booking_summary

router = APIRouter(tags=["admin"])

# ──────────────────────────────────────────────────────────────────────────────
# Basics
# (main.py mounts this router with prefix="/admin")
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/ping")
def admin_ping():
    return {"ok": True, "ts": datetime.utcnow().isoformat()}


@router.get("/health")
def admin_health():
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "tz": settings.TIMEZONE,
        "zoom_configured": settings.zoom_configured,
        "email_configured": bool(settings.RESEND_API_KEY),
        "calendar_configured": settings.calendar_configured,
        "ts": datetime.utcnow().isoformat(),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Bookings
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/consultations", dependencies=[Depends(require_admin)])
def admin_consultations_for_day(
    date: str = Query(..., description="YYYY-MM-DD"),
    include_cancelled: bool = Query(default=True),
    ledger: BookingLedger = Depends(get_ledger),
):
    """Every booking on one day, cancelled rows included unless asked otherwise."""
    d = parse_date(date)
    items = [booking_summary(b) for b in ledger.bookings_on(d, include_cancelled=include_cancelled)]
    return {"ok": True, "date": d.isoformat(), "count": len(items), "consultations": items}


@router.get("/consultations/upcoming", dependencies=[Depends(require_admin)])
def admin_upcoming(
    days: int = Query(default=7, ge=1, le=90),
    ledger: BookingLedger = Depends(get_ledger),
):
    items = [booking_summary(b) for b in ledger.upcoming(days=days)]
    return {"ok": True, "days": days, "count": len(items), "consultations": items}


@router.patch("/consultations/{booking_id}/status", dependencies=[Depends(require_admin)])
def admin_update_status(
    booking_id: str,
    req: schemas.StatusUpdateRequest,
    orch: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Mark a booking completed / no-show / cancelled. Cancelling from here goes
    through the same path as a client cancellation (meeting removed, emails sent).
    """
    booking = orch.update_status(booking_id, req.status, req.notes)
    return {"ok": True, "booking": booking_summary(booking)}


@router.get("/stats", dependencies=[Depends(require_admin)])
def admin_stats(ledger: BookingLedger = Depends(get_ledger)):
    return {"ok": True, **ledger.stats()}


# ──────────────────────────────────────────────────────────────────────────────
# Slot definitions
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/slots", dependencies=[Depends(require_admin)])
def admin_list_slots(catalog: SlotCatalog = Depends(get_catalog)):
    slots = [schemas.SlotDefinitionOut.model_validate(s).model_dump(mode="json") for s in catalog.list_slots()]
    return {"ok": True, "count": len(slots), "slots": slots}


@router.put("/slots", dependencies=[Depends(require_admin)])
def admin_upsert_slot(req: schemas.SlotDefinitionIn, catalog: SlotCatalog = Depends(get_catalog)):
    slot = catalog.upsert_slot(req.day_of_week, req.start_time, req.end_time, active=req.is_active)
    return {"ok": True, "slot": schemas.SlotDefinitionOut.model_validate(slot).model_dump(mode="json")}


@router.post("/slots/seed", dependencies=[Depends(require_admin)])
def admin_seed_slots(catalog: SlotCatalog = Depends(get_catalog)):
    created = catalog.initialize_default_slots()
    return {"ok": True, "created": created}


# ──────────────────────────────────────────────────────────────────────────────
# Blocked dates
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/blocked-dates", dependencies=[Depends(require_admin)])
def admin_list_blocked(
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    catalog: SlotCatalog = Depends(get_catalog),
):
    s_d = parse_date(start_date) if start_date else None
    e_d = parse_date(end_date) if end_date else None
    items = [schemas.BlockedDateOut.model_validate(b).model_dump(mode="json")
             for b in catalog.list_blocked_dates(s_d, e_d)]
    return {"ok": True, "count": len(items), "blocked_dates": items}


@router.post("/blocked-dates", dependencies=[Depends(require_admin)])
def admin_block_date(req: schemas.BlockedDateIn, catalog: SlotCatalog = Depends(get_catalog)):
    blocked = catalog.block_date(req.date, req.reason, req.all_day, req.start_time, req.end_time)
    return {"ok": True, "blocked_date": schemas.BlockedDateOut.model_validate(blocked).model_dump(mode="json")}


@router.delete("/blocked-dates/{blocked_id}", dependencies=[Depends(require_admin)])
def admin_unblock_date(blocked_id: int, catalog: SlotCatalog = Depends(get_catalog)):
    catalog.unblock_date(blocked_id)
    return {"ok": True, "deleted_id": blocked_id}

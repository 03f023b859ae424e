# agency_booking/routers/consultations.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import models, schemas
from ..dependencies import get_ledger, get_orchestrator, get_resolver
from ..errors import ValidationError
from ..models import ConsultationType
from ..services.availability import AvailabilityResolver
from ..services.email_templates import MEETING_PENDING
from ..services.ledger import BookingInput, BookingLedger
from ..services.orchestrator import BookingOrchestrator
from ..timeutils import format_long_date, parse_date, parse_slot_time

router = APIRouter(prefix="/consultations", tags=["consultations"])


def booking_summary(b: models.Booking) -> dict:
    return {
        "bookingId": b.booking_id,
        "name": b.name,
        "email": b.email,
        "phone": b.phone,
        "company": b.company,
        "date": b.requested_date.isoformat(),
        "time": b.requested_time,
        "type": b.consultation_type.value,
        "status": b.status.value,
        "projectDetails": b.project_details,
        "budget": b.budget,
        "timeline": b.timeline,
        "meetingUrl": b.meeting_url,
        "notes": b.notes,
        "createdAt": b.created_at.isoformat() if b.created_at else None,
    }


def _meeting_details(b: models.Booking) -> Optional[dict]:
    if b.consultation_type != ConsultationType.video:
        return None
    if b.meeting_url:
        return {"url": b.meeting_url, "password": b.meeting_password}
    return {"url": None, "password": None, "note": MEETING_PENDING}


@router.post("")
def book_consultation(req: schemas.ConsultationRequest, orch: BookingOrchestrator = Depends(get_orchestrator)):
    booking = orch.book(BookingInput(
        name=req.name,
        email=req.email,
        phone=req.phone,
        company=req.company,
        requested_date=req.preferred_date,
        requested_time=req.preferred_time,
        consultation_type=req.consultation_type,
        project_details=req.project_details,
        budget=req.budget,
        timeline=req.timeline,
    ))
    out = {
        "success": True,
        "message": "Your consultation has been booked successfully!",
        "bookingId": booking.booking_id,
        "date": format_long_date(booking.requested_date),
        "time": booking.requested_time,
        "type": booking.consultation_type.value,
    }
    details = _meeting_details(booking)
    if details is not None:
        out["meetingDetails"] = details
    return out


@router.get("/slots", response_model=schemas.SlotsResponse)
def get_slots(date: Optional[str] = Query(None, description="YYYY-MM-DD"),
              resolver: AvailabilityResolver = Depends(get_resolver)):
    d = parse_date(date)
    return {"date": d.isoformat(), "slots": resolver.snapshot(d)}


@router.get("/{booking_id}")
def get_consultation(booking_id: str, ledger: BookingLedger = Depends(get_ledger)):
    return {"success": True, "booking": booking_summary(ledger.find_by_booking_id(booking_id))}


@router.delete("/{booking_id}")
def cancel_consultation(booking_id: str, orch: BookingOrchestrator = Depends(get_orchestrator)):
    outcome = orch.cancel(booking_id)
    message = ("Consultation was already cancelled" if outcome.already_cancelled
               else "Consultation cancelled successfully")
    return {"success": True, "message": message, "bookingId": outcome.booking.booking_id}


@router.patch("/{booking_id}")
def reschedule_consultation(booking_id: str, req: schemas.RescheduleRequest,
                            orch: BookingOrchestrator = Depends(get_orchestrator)):
    if not req.new_date or not req.new_time:
        raise ValidationError("Missing required fields for rescheduling")
    booking = orch.reschedule(booking_id, parse_date(req.new_date), parse_slot_time(req.new_time))
    return {
        "success": True,
        "message": "Consultation rescheduled successfully",
        "newBooking": {
            "date": format_long_date(booking.requested_date),
            "time": booking.requested_time,
        },
    }

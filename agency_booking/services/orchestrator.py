# agency_booking/services/orchestrator.py
"""
Book / cancel / reschedule workflows.

The booking row is written first and is the source of truth. Meeting
provisioning, the calendar mirror and emails come after it, and their
failures are logged without touching the booking's outcome.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Protocol

from .. import models
from ..config import settings
from ..errors import CalendarSyncError, ProvisionerError, StorageError
from ..models import BookingStatus, ConsultationType
from ..timeutils import format_long_date
from . import email_templates
from .calendar_sync import CalendarMirror
from .ledger import BookingInput, BookingLedger
from .notifications import EmailMessage, NotificationDispatcher
from .zoom import MeetingDetails, meeting_id_from_notes

logger = logging.getLogger(__name__)


class MeetingProvisioner(Protocol):
    def create_meeting(self, topic: str, start_time: datetime, duration_minutes: int = 60,
                       agenda: Optional[str] = None, password: Optional[str] = None) -> MeetingDetails: ...

    def delete_meeting(self, meeting_id: int) -> bool: ...


@dataclass
class CancelOutcome:
    booking: models.Booking
    already_cancelled: bool = False


class BookingOrchestrator:
    def __init__(
        self,
        ledger: BookingLedger,
        provisioner: Optional[MeetingProvisioner],
        dispatcher: NotificationDispatcher,
        calendar: Optional[CalendarMirror] = None,
        operator_email: Optional[str] = None,
        meeting_duration_min: Optional[int] = None,
    ):
        self.ledger = ledger
        self.provisioner = provisioner
        self.dispatcher = dispatcher
        self.calendar = calendar
        self.operator_email = operator_email or settings.COMPANY_EMAIL
        self.meeting_duration_min = meeting_duration_min or settings.MEETING_DURATION_MIN

    # ──────────────────────────────────────────────────────────────────────
    # Book
    # ──────────────────────────────────────────────────────────────────────
    def book(self, data: BookingInput) -> models.Booking:
        booking = self.ledger.create(data)

        if booking.consultation_type == ConsultationType.video:
            meeting = self._provision(booking)
            if meeting is not None:
                booking = self._attach_meeting(booking, meeting)

        booking = self._mirror_create(booking)

        subject_op, html_op = email_templates.operator_new_booking(booking)
        subject_cl, html_cl = email_templates.client_confirmation(booking)
        self.dispatcher.dispatch([
            EmailMessage(self.operator_email, subject_op, html_op, reply_to=booking.email),
            EmailMessage(booking.email, subject_cl, html_cl),
        ])
        return booking

    # ──────────────────────────────────────────────────────────────────────
    # Cancel
    # ──────────────────────────────────────────────────────────────────────
    def cancel(self, booking_id: str, reason: Optional[str] = None) -> CancelOutcome:
        booking = self.ledger.find_by_booking_id(booking_id)
        if booking.status == BookingStatus.cancelled:
            logger.info("Booking %s already cancelled; nothing to do", booking_id)
            return CancelOutcome(booking, already_cancelled=True)

        # Fails before any external side effect if the booking is completed / no-show
        self.ledger.ensure_transition(booking, BookingStatus.cancelled)

        meeting_id = booking.meeting_id or meeting_id_from_notes(booking.notes)
        if meeting_id:
            self._delete_meeting(meeting_id)
        if booking.calendar_event_id and self.calendar is not None:
            try:
                self.calendar.delete_event(booking.calendar_event_id)
            except CalendarSyncError as e:
                logger.warning("Calendar event for %s not removed: %s", booking_id, e)

        note = f"Cancelled at: {datetime.utcnow().replace(microsecond=0).isoformat()}Z"
        if reason:
            note = f"{note} (reason: {reason})"
        booking = self.ledger.update_status(booking_id, BookingStatus.cancelled, note)

        subject_op, html_op = email_templates.operator_cancellation(booking)
        subject_cl, html_cl = email_templates.client_cancellation(booking)
        self.dispatcher.dispatch([
            EmailMessage(self.operator_email, subject_op, html_op),
            EmailMessage(booking.email, subject_cl, html_cl),
        ])
        return CancelOutcome(booking)

    # ──────────────────────────────────────────────────────────────────────
    # Reschedule
    # ──────────────────────────────────────────────────────────────────────
    def reschedule(self, booking_id: str, new_date: date, new_time: time) -> models.Booking:
        current = self.ledger.find_by_booking_id(booking_id)
        old_slot = (current.requested_date, current.requested_time)
        old_when = f"{format_long_date(current.requested_date)} at {current.requested_time}"
        old_meeting_id = current.meeting_id or meeting_id_from_notes(current.notes)

        booking = self.ledger.reschedule(booking_id, new_date, new_time)
        if (booking.requested_date, booking.requested_time) == old_slot:
            return booking

        if booking.consultation_type == ConsultationType.video:
            if old_meeting_id:
                self._delete_meeting(old_meeting_id)
            meeting = self._provision(booking)
            # None clears the old link: that meeting is gone or points at the old time
            booking = self._attach_meeting(booking, meeting)

        if booking.calendar_event_id and self.calendar is not None:
            try:
                self.calendar.update_event(booking.calendar_event_id, booking.scheduled_at, self.meeting_duration_min)
            except CalendarSyncError as e:
                logger.warning("Calendar event for %s not moved: %s", booking_id, e)

        subject_op, html_op = email_templates.operator_reschedule(booking, old_when)
        subject_cl, html_cl = email_templates.client_reschedule(booking)
        self.dispatcher.dispatch([
            EmailMessage(self.operator_email, subject_op, html_op),
            EmailMessage(booking.email, subject_cl, html_cl),
        ])
        return booking

    # ──────────────────────────────────────────────────────────────────────
    # Admin status changes
    # ──────────────────────────────────────────────────────────────────────
    def update_status(self, booking_id: str, new_status: BookingStatus, notes: Optional[str] = None) -> models.Booking:
        if new_status == BookingStatus.cancelled:
            return self.cancel(booking_id, reason=notes).booking
        return self.ledger.update_status(booking_id, new_status, notes)

    # ====== Best-effort helpers ======
    def _provision(self, booking: models.Booking) -> Optional[MeetingDetails]:
        if self.provisioner is None:
            logger.warning("No meeting provisioner configured; %s has no meeting link", booking.booking_id)
            return None
        try:
            return self.provisioner.create_meeting(
                topic=f"Consultation with {booking.name}",
                start_time=booking.scheduled_at,
                duration_minutes=self.meeting_duration_min,
                agenda=booking.project_details or f"Consultation meeting with {booking.name} ({booking.email})",
            )
        except ProvisionerError as e:
            logger.error("Meeting not created for %s (booking kept): %s", booking.booking_id, e)
            return None

    def _delete_meeting(self, meeting_id: int) -> None:
        if self.provisioner is None:
            return
        try:
            self.provisioner.delete_meeting(meeting_id)
        except ProvisionerError as e:
            logger.warning("Meeting %s not deleted: %s", meeting_id, e)

    def _attach_meeting(self, booking: models.Booking, meeting: Optional[MeetingDetails]) -> models.Booking:
        try:
            return self.ledger.attach_meeting(booking.booking_id, meeting)
        except StorageError as e:
            logger.error("Meeting not recorded for %s (booking kept): %s", booking.booking_id, e)
            if meeting is not None:
                self._delete_meeting(meeting.meeting_id)
            return self.ledger.find_by_booking_id(booking.booking_id)

    def _mirror_create(self, booking: models.Booking) -> models.Booking:
        if self.calendar is None:
            return booking
        description = f"Booking {booking.booking_id}\n{booking.email} / {booking.phone}\n\n{booking.project_details}"
        if booking.meeting_url:
            description += f"\n\nJoin: {booking.meeting_url}"
        try:
            event_id = self.calendar.create_event(
                summary=f"Consultation with {booking.name}",
                start_local=booking.scheduled_at,
                duration_min=self.meeting_duration_min,
                description=description,
            )
        except CalendarSyncError as e:
            logger.warning("Calendar event not created for %s: %s", booking.booking_id, e)
            return booking
        try:
            return self.ledger.attach_calendar_event(booking.booking_id, event_id)
        except StorageError as e:
            logger.error("Calendar event not recorded for %s (booking kept): %s", booking.booking_id, e)
            try:
                self.calendar.delete_event(event_id)
            except CalendarSyncError as err:
                logger.warning("Calendar event %s not removed: %s", event_id, err)
            return self.ledger.find_by_booking_id(booking.booking_id)

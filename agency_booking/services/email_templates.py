# agency_booking/services/email_templates.py
"""HTML bodies for consultation emails. User-supplied text is always escaped."""
from __future__ import annotations
from datetime import datetime
from html import escape
from typing import Optional

from ..config import settings
from ..models import Booking, ConsultationType
from ..timeutils import format_long_date

_STYLE = """
  body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .header { color: white; padding: 20px; border-radius: 5px 5px 0 0; }
  .content { background-color: #f9f9f9; padding: 20px; border: 1px solid #ddd; }
  .box { background-color: white; border: 2px solid #8B5CF6; padding: 20px; border-radius: 5px; margin: 20px 0; }
  .label { font-weight: bold; color: #555; }
  .footer { margin-top: 20px; text-align: center; color: #777; font-size: 12px; }
"""

TYPE_LABELS = {
    ConsultationType.video: "Video Call",
    ConsultationType.phone: "Phone Call",
    ConsultationType.in_person: "In-Person Meeting",
}

MEETING_PENDING = "Will be sent separately"


def _page(title: str, color: str, inner: str) -> str:
    return f"""<!DOCTYPE html>
<html>
  <head><style>{_STYLE}</style></head>
  <body>
    <div class="container">
      <div class="header" style="background-color: {color};"><h2>{escape(title)}</h2></div>
      <div class="content">{inner}</div>
      <div class="footer">
        <p>&copy; {datetime.utcnow().year} {escape(settings.COMPANY_NAME)}</p>
      </div>
    </div>
  </body>
</html>"""


def _row(label: str, value: Optional[str], default: str = "Not provided") -> str:
    return f'<p><span class="label">{escape(label)}:</span> {escape(value or default)}</p>'


def _when(b: Booking) -> str:
    return f"{format_long_date(b.requested_date)} at {b.requested_time}"


def _meeting_block(b: Booking) -> str:
    if b.consultation_type == ConsultationType.video:
        if b.meeting_url:
            return (
                f'<p><span class="label">Meeting Link:</span> <a href="{escape(b.meeting_url)}">Join Meeting</a></p>'
                f"{_row('Meeting ID', str(b.meeting_id))}"
                f"{_row('Password', b.meeting_password)}"
            )
        return _row("Meeting Link", MEETING_PENDING)
    if b.consultation_type == ConsultationType.phone:
        return f"<p>We will call you at {escape(b.phone)}.</p>"
    return _row("Location", settings.OFFICE_ADDRESS)


# ====== Booking ======
def operator_new_booking(b: Booking) -> tuple[str, str]:
    subject = f"New Consultation Booking - {b.name} - {format_long_date(b.requested_date)}"
    host = ""
    if b.meeting_host_url:
        host = f'<p><span class="label">Host link:</span> <a href="{escape(b.meeting_host_url)}">Start Meeting</a></p>'
    inner = (
        f'<div class="box">{_row("Booking ID", b.booking_id)}{_row("When", _when(b))}'
        f'{_row("Type", TYPE_LABELS[b.consultation_type])}{_meeting_block(b)}{host}</div>'
        f"{_row('Client Name', b.name)}{_row('Email', b.email)}{_row('Phone', b.phone)}"
        f"{_row('Company', b.company)}{_row('Budget', b.budget, 'Not specified')}"
        f"{_row('Timeline', b.timeline, 'Not specified')}{_row('Project Details', b.project_details)}"
    )
    return subject, _page("New Consultation Booking", "#8B5CF6", inner)


def client_confirmation(b: Booking) -> tuple[str, str]:
    subject = f"Consultation Confirmed - {format_long_date(b.requested_date)} at {b.requested_time}"
    inner = (
        f"<p>Dear {escape(b.name)},</p>"
        "<p>Your consultation has been successfully booked. We look forward to discussing your project!</p>"
        f'<div class="box"><h3>Appointment Details</h3>{_row("Booking ID", b.booking_id)}'
        f'{_row("Date", format_long_date(b.requested_date))}{_row("Time", b.requested_time)}'
        f'{_row("Type", TYPE_LABELS[b.consultation_type])}{_meeting_block(b)}</div>'
        "<p>If you need to reschedule, please reply to this email at least 24 hours in advance.</p>"
        f'<p><a href="{escape(settings.SITE_URL)}">Visit our website</a></p>'
    )
    return subject, _page("Consultation Confirmed!", "#8B5CF6", inner)


# ====== Cancellation ======
def operator_cancellation(b: Booking) -> tuple[str, str]:
    subject = f"Consultation Cancelled - {b.name}"
    zoom_note = "<p>The Zoom meeting has been cancelled automatically.</p>" if b.meeting_id else ""
    inner = (
        f'<div class="box">{_row("Booking ID", b.booking_id)}{_row("Original Date", format_long_date(b.requested_date))}'
        f'{_row("Original Time", b.requested_time)}{_row("Cancelled At", datetime.utcnow().isoformat(timespec="minutes") + "Z")}</div>'
        f"{_row('Name', b.name)}{_row('Email', b.email)}{_row('Phone', b.phone)}{_row('Company', b.company)}"
        f"{_row('Project Details', b.project_details)}{zoom_note}"
    )
    return subject, _page("Consultation Cancelled", "#EF4444", inner)


def client_cancellation(b: Booking) -> tuple[str, str]:
    subject = "Your Consultation Has Been Cancelled"
    inner = (
        f"<p>Dear {escape(b.name)},</p>"
        f'<div class="box"><h3>Your consultation has been cancelled</h3>{_row("Booking ID", b.booking_id)}'
        f'{_row("Original Date", format_long_date(b.requested_date))}{_row("Original Time", b.requested_time)}'
        f'{_row("Type", TYPE_LABELS[b.consultation_type])}</div>'
        f'<p>Want to pick another time? <a href="{escape(settings.SITE_URL)}/consultation">Book a new consultation</a>.</p>'
    )
    return subject, _page("Consultation Cancelled", "#EF4444", inner)


# ====== Reschedule ======
def operator_reschedule(b: Booking, old_when: str) -> tuple[str, str]:
    subject = f"Consultation Rescheduled - {b.name}"
    inner = (
        f"{_row('Client', b.name)}{_row('Old Date', old_when)}{_row('New Date', _when(b))}"
        f"{_row('Booking ID', b.booking_id)}{_meeting_block(b)}"
    )
    return subject, _page("Consultation Rescheduled", "#8B5CF6", inner)


def client_reschedule(b: Booking) -> tuple[str, str]:
    subject = f"Consultation Rescheduled - {format_long_date(b.requested_date)}"
    inner = (
        f"<p>Dear {escape(b.name)},</p>"
        "<p>Your consultation has been successfully rescheduled.</p>"
        f'<div class="box">{_row("New Date", format_long_date(b.requested_date))}'
        f'{_row("New Time", b.requested_time)}{_meeting_block(b)}</div>'
        "<p>If you need to make any changes, please contact us.</p>"
    )
    return subject, _page("Your Consultation Has Been Rescheduled", "#8B5CF6", inner)

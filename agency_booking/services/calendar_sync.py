# agency_booking/services/calendar_sync.py
from __future__ import annotations
import os, json, logging, threading
from datetime import datetime, timedelta
from typing import Optional

import pytz
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config import settings
from ..errors import CalendarSyncError

logger = logging.getLogger(__name__)

_SCOPES = ["https://www.googleapis.com/auth/calendar"]


def _load_credentials(sa_json: str, impersonate: Optional[str] = None):
    """
    Service account credentials from ``sa_json`` (inline JSON or a path to a
    .json file), optionally delegated to ``impersonate``.
    """
    try:
        if os.path.exists(sa_json):
            with open(sa_json, "r", encoding="utf-8") as f:
                info = json.load(f)
        else:
            info = json.loads(sa_json)
    except (OSError, ValueError) as e:
        raise CalendarSyncError(f"Invalid GCAL_SA_JSON: {e}") from e

    creds = service_account.Credentials.from_service_account_info(info, scopes=_SCOPES)
    if impersonate:
        creds = creds.with_subject(impersonate)
    return creds


class CalendarMirror:
    """Best-effort copy of bookings into a Google Calendar."""

    def __init__(self, calendar_id: str, sa_json: Optional[str], tz_name: str,
                 impersonate: Optional[str] = None, service=None):
        self.calendar_id = calendar_id or "primary"
        self.sa_json = sa_json
        self.tz_name = tz_name
        self.impersonate = impersonate
        self._service = service
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls) -> "CalendarMirror":
        return cls(
            calendar_id=settings.GCAL_CALENDAR_ID,
            sa_json=settings.GCAL_SA_JSON,
            tz_name=settings.TIMEZONE,
            impersonate=settings.GCAL_IMPERSONATE_EMAIL,
        )

    def _get_service(self):
        if self._service is None:
            with self._lock:
                if self._service is None:
                    if not self.sa_json:
                        raise CalendarSyncError("Google Calendar is not configured")
                    creds = _load_credentials(self.sa_json, self.impersonate)
                    self._service = build("calendar", "v3", credentials=creds, cache_discovery=False)
                    logger.info("Google Calendar client ready. CALENDAR_ID=%s TZ=%s", self.calendar_id, self.tz_name)
        return self._service

    def _window(self, start_local: datetime, duration_min: int) -> dict:
        tz = pytz.timezone(self.tz_name)
        if start_local.tzinfo is None:
            start_local = tz.localize(start_local)
        else:
            start_local = start_local.astimezone(tz)
        end_local = start_local + timedelta(minutes=duration_min)
        return {
            "start": {"dateTime": start_local.isoformat(), "timeZone": self.tz_name},
            "end": {"dateTime": end_local.isoformat(), "timeZone": self.tz_name},
        }

    def create_event(self, summary: str, start_local: datetime, duration_min: int,
                     description: str = "", location: str = "") -> str:
        body = {
            "summary": summary,
            "description": description or "",
            "location": location or "",
            **self._window(start_local, duration_min),
        }
        try:
            ev = self._get_service().events().insert(calendarId=self.calendar_id, body=body).execute()
        except (HttpError, GoogleAuthError) as e:
            raise CalendarSyncError(f"Could not create calendar event: {e}") from e
        logger.info("GCAL create_event OK: event_id=%s htmlLink=%s", ev.get("id"), ev.get("htmlLink"))
        return ev["id"]

    def update_event(self, event_id: str, new_start_local: datetime, duration_min: int) -> str:
        body = self._window(new_start_local, duration_min)
        try:
            ev = self._get_service().events().patch(
                calendarId=self.calendar_id, eventId=event_id, body=body
            ).execute()
        except (HttpError, GoogleAuthError) as e:
            raise CalendarSyncError(f"Could not update calendar event {event_id}: {e}") from e
        logger.info("GCAL update_event OK: event_id=%s", ev.get("id"))
        return ev["id"]

    def delete_event(self, event_id: str) -> None:
        """Idempotent: a missing event counts as deleted."""
        try:
            self._get_service().events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as e:
            if getattr(e, "status_code", None) in (404, 410) or getattr(e.resp, "status", None) in (404, 410):
                logger.info("GCAL delete_event: event_id=%s already gone", event_id)
                return
            raise CalendarSyncError(f"Could not delete calendar event {event_id}: {e}") from e
        except GoogleAuthError as e:
            raise CalendarSyncError(f"Could not delete calendar event {event_id}: {e}") from e
        logger.info("GCAL delete_event OK: event_id=%s", event_id)


_mirror: Optional[CalendarMirror] = None


def get_calendar_mirror() -> Optional[CalendarMirror]:
    """``None`` unless service-account credentials are configured."""
    global _mirror
    if not settings.calendar_configured:
        return None
    if _mirror is None:
        _mirror = CalendarMirror.from_settings()
    return _mirror

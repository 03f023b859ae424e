# agency_booking/services/zoom.py
from __future__ import annotations
import logging
import re
import secrets
import threading
import time as _time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

import httpx
import pytz

from ..config import settings
from ..errors import ProvisionerAPIError, ProvisionerAuthError

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MIN = 60
# Refresh this many seconds before the provider says the token expires
TOKEN_EXPIRY_MARGIN_S = 300
# No 0/O, 1/l/I
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
PASSWORD_LENGTH = 8

_MEETING_ID_NOTE = re.compile(r"Zoom Meeting ID: (\d+)")


@dataclass(frozen=True)
class MeetingDetails:
    join_url: str
    meeting_id: int
    password: str
    host_url: str

    def note(self) -> str:
        return f"Zoom Meeting ID: {self.meeting_id}, Password: {self.password}"


@dataclass(frozen=True)
class TokenCache:
    token: str
    expires_at: float  # monotonic clock

    def valid(self, now: float) -> bool:
        return bool(self.token) and now < self.expires_at


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def meeting_id_from_notes(notes: Optional[str]) -> Optional[int]:
    """Older rows only kept the meeting id as a breadcrumb in notes."""
    if not notes:
        return None
    m = _MEETING_ID_NOTE.search(notes)
    return int(m.group(1)) if m else None


def _zoom_start_time(start_time: datetime, tz_name: str) -> str:
    if start_time.tzinfo is None:
        start_time = pytz.timezone(tz_name).localize(start_time)
    return start_time.astimezone(pytz.UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class ZoomClient:
    """
    Zoom Server-to-Server OAuth client.

    The bearer token lives in a ``TokenCache`` on the instance. Refreshes go
    through ``_token_lock`` and re-check the cache after acquiring it, so
    threads that find an expired token together share one token request.
    """

    def __init__(
        self,
        account_id: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        user_email: Optional[str] = None,
        base_url: str = "https://api.zoom.us/v2",
        oauth_url: str = "https://zoom.us/oauth/token",
        timeout: float = 10.0,
        tz_name: str = "UTC",
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = _time.monotonic,
    ):
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.user_email = user_email
        self.base_url = base_url.rstrip("/")
        self.oauth_url = oauth_url
        self.tz_name = tz_name
        self._clock = clock
        self._http = httpx.Client(timeout=timeout, transport=transport)
        self._token: Optional[TokenCache] = None
        self._token_lock = threading.Lock()

    @classmethod
    def from_settings(cls) -> "ZoomClient":
        return cls(
            account_id=settings.ZOOM_ACCOUNT_ID,
            client_id=settings.ZOOM_CLIENT_ID,
            client_secret=settings.ZOOM_CLIENT_SECRET,
            user_email=settings.ZOOM_USER_EMAIL,
            base_url=settings.ZOOM_API_BASE,
            oauth_url=settings.ZOOM_OAUTH_URL,
            timeout=settings.ZOOM_TIMEOUT_SECONDS,
            tz_name=settings.TIMEZONE,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.account_id and self.client_id and self.client_secret)

    def close(self) -> None:
        self._http.close()

    # ====== Token ======
    def _access_token(self) -> str:
        cached = self._token
        if cached and cached.valid(self._clock()):
            return cached.token

        with self._token_lock:
            cached = self._token
            if cached and cached.valid(self._clock()):
                return cached.token
            self._token = self._fetch_token()
            return self._token.token

    def _fetch_token(self) -> TokenCache:
        if not self.is_configured:
            raise ProvisionerAuthError("Zoom credentials are not configured")

        try:
            resp = self._http.post(
                self.oauth_url,
                params={"grant_type": "account_credentials", "account_id": self.account_id},
                auth=(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            logger.error("Zoom token request failed: %s", e)
            raise ProvisionerAuthError(f"Failed to authenticate with Zoom: {e}") from e

        if resp.status_code != 200:
            logger.error("Zoom token request rejected: status=%s body=%s", resp.status_code, resp.text)
            raise ProvisionerAuthError(f"Failed to authenticate with Zoom (HTTP {resp.status_code})")

        try:
            data = resp.json()
            token = data.get("access_token")
            expires_in = int(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProvisionerAuthError(f"Unreadable Zoom token response: {e}") from e
        if not token:
            raise ProvisionerAuthError("Zoom token response had no access_token")
        logger.info("Zoom access token refreshed (expires_in=%ss)", expires_in)
        return TokenCache(token=token, expires_at=self._clock() + expires_in - TOKEN_EXPIRY_MARGIN_S)

    # ====== Requests ======
    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        token = self._access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return self._http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("Zoom %s %s timed out", method, path)
            raise ProvisionerAPIError(f"Zoom request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.error("Zoom %s %s failed: %s", method, path, e)
            raise ProvisionerAPIError(f"Zoom request failed: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response, action: str) -> None:
        if resp.is_success:
            return
        logger.error("Zoom %s failed: status=%s body=%s", action, resp.status_code, resp.text)
        raise ProvisionerAPIError(f"Failed to {action} (HTTP {resp.status_code})", status=resp.status_code)

    # ====== Meetings ======
    def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration_minutes: int = DEFAULT_DURATION_MIN,
        agenda: Optional[str] = None,
        password: Optional[str] = None,
    ) -> MeetingDetails:
        """Schedule a meeting. Naive ``start_time`` is read as local agency time."""
        meeting_password = password or generate_password()
        meeting_settings = {
            "host_video": True,
            "participant_video": True,
            "join_before_host": False,
            "mute_upon_entry": True,
            "watermark": False,
            "use_pmi": False,
            "approval_type": 0,
            "audio": "both",
            "auto_recording": "none",
            "waiting_room": True,
            "meeting_authentication": False,
            "email_notification": True,
        }
        if self.user_email:
            meeting_settings["host_email"] = self.user_email

        body = {
            "topic": topic,
            "type": 2,  # scheduled
            "start_time": _zoom_start_time(start_time, self.tz_name),
            "duration": duration_minutes,
            "timezone": "UTC",
            "password": meeting_password,
            "agenda": agenda or topic,
            "settings": meeting_settings,
        }
        logger.info("Zoom create_meeting: topic=%s start=%s", topic, body["start_time"])
        resp = self._request("POST", "/users/me/meetings", json=body)
        self._raise_for_status(resp, "create Zoom meeting")

        try:
            data = resp.json()
            meeting = MeetingDetails(
                join_url=data["join_url"],
                meeting_id=int(data["id"]),
                password=data.get("password") or meeting_password,
                host_url=data.get("start_url", ""),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Zoom create_meeting: unusable response body=%s", resp.text)
            raise ProvisionerAPIError(f"Unreadable Zoom meeting response: {e}", status=resp.status_code) from e
        logger.info("Zoom create_meeting OK: meeting_id=%s", meeting.meeting_id)
        return meeting

    def update_meeting(self, meeting_id: int, start_time: Optional[datetime] = None,
                       duration_minutes: Optional[int] = None) -> None:
        body: dict[str, Any] = {}
        if start_time is not None:
            body["start_time"] = _zoom_start_time(start_time, self.tz_name)
        if duration_minutes:
            body["duration"] = duration_minutes
        if not body:
            return
        resp = self._request("PATCH", f"/meetings/{meeting_id}", json=body)
        self._raise_for_status(resp, "update Zoom meeting")
        logger.info("Zoom update_meeting OK: meeting_id=%s body=%s", meeting_id, body)

    def delete_meeting(self, meeting_id: int) -> bool:
        """True if deleted now, False if Zoom no longer knew the meeting."""
        resp = self._request("DELETE", f"/meetings/{meeting_id}")
        if resp.status_code == 404:
            logger.info("Zoom delete_meeting: meeting_id=%s already gone", meeting_id)
            return False
        self._raise_for_status(resp, "delete Zoom meeting")
        logger.info("Zoom delete_meeting OK: meeting_id=%s", meeting_id)
        return True

    def get_meeting(self, meeting_id: int) -> dict:
        resp = self._request("GET", f"/meetings/{meeting_id}")
        self._raise_for_status(resp, "get Zoom meeting")
        try:
            return resp.json()
        except ValueError as e:
            raise ProvisionerAPIError(f"Unreadable Zoom meeting response: {e}", status=resp.status_code) from e


_client: Optional[ZoomClient] = None
_client_lock = threading.Lock()


def get_zoom_client() -> ZoomClient:
    """Process-wide client, so every request shares one token cache."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = ZoomClient.from_settings()
                if not _client.is_configured:
                    logger.warning("Zoom credentials not set: video bookings will have no meeting link.")
    return _client


def close_zoom_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None

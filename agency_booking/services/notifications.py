# agency_booking/services/notifications.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol

import resend
from resend.exceptions import ResendError

from ..config import settings
from ..errors import NotifierError
from ..jobs.dispatcher import spawn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    reply_to: Optional[str] = None


class Notifier(Protocol):
    def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> str: ...


class ResendNotifier:
    def __init__(self, api_key: str, sender: str):
        self.api_key = api_key
        self.sender = sender

    def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> str:
        resend.api_key = self.api_key
        params = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        if reply_to:
            params["reply_to"] = reply_to
        try:
            result = resend.Emails.send(params)
        except ResendError as e:
            raise NotifierError(f"Email to {to} failed: {e}") from e
        message_id = (result or {}).get("id")
        if not message_id:
            raise NotifierError(f"Email to {to} was not accepted: {result!r}")
        return message_id


class LoggingNotifier:
    """Stand-in while RESEND_API_KEY is unset: logs what would have been sent."""

    def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> str:
        logger.info("[EMAIL DRY RUN] to=%s subject=%s reply_to=%s", to, subject, reply_to)
        return f"mock-email-{int(time.time() * 1000)}"


def get_notifier() -> Notifier:
    if settings.RESEND_API_KEY:
        return ResendNotifier(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    return LoggingNotifier()


class NotificationDispatcher:
    """
    Hands each message to ``spawn`` as its own job and returns immediately.
    Delivery failures are logged inside the job; nothing reaches the caller.
    """

    def __init__(self, notifier: Notifier, spawn_fn: Callable = spawn):
        self.notifier = notifier
        self._spawn = spawn_fn

    def dispatch(self, messages: Iterable[EmailMessage]) -> None:
        for msg in messages:
            self._spawn(self.deliver, msg)

    def deliver(self, msg: EmailMessage) -> Optional[str]:
        try:
            message_id = self.notifier.send(msg.to, msg.subject, msg.html, reply_to=msg.reply_to)
        except NotifierError as e:
            logger.warning("Notification not delivered: to=%s subject=%s err=%s", msg.to, msg.subject, e)
            return None
        logger.info("Notification sent: to=%s subject=%s id=%s", msg.to, msg.subject, message_id)
        return message_id

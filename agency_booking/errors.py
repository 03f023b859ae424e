# agency_booking/errors.py
from __future__ import annotations
from typing import Optional


class BookingError(Exception):
    """Base for every error the booking engine raises on purpose."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(BookingError, ValueError):
    """Malformed or missing input. Subclasses ValueError so pydantic validators can raise it."""
    status_code = 400


class SlotTakenError(BookingError):
    status_code = 400

    def __init__(self, message: str = "This time slot is no longer available. Please choose another time.",
                 available_slots: Optional[list[dict]] = None):
        super().__init__(message)
        self.available_slots = available_slots or []


class NotFoundError(BookingError):
    status_code = 404


class InvalidTransitionError(BookingError):
    status_code = 409


class StorageError(BookingError):
    status_code = 500


# ===== Best-effort collaborators (never surfaced to the caller) =====
class ProvisionerError(BookingError):
    status_code = 502


class ProvisionerAuthError(ProvisionerError):
    pass


class ProvisionerAPIError(ProvisionerError):
    def __init__(self, message: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotifierError(BookingError):
    pass


class CalendarSyncError(BookingError):
    pass

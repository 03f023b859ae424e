# agency_booking/timeutils.py
"""
Boundary parsing for dates and slot times.

Every date/time that enters the system goes through here and comes out as a
``datetime.date`` or ``datetime.time``. Anything that does not parse is a
``ValidationError``; there is no "fall back to today" path.
"""
from __future__ import annotations
import re
from datetime import date, datetime, time
from typing import Union

import pytz
from dateutil.parser import isoparse

from .errors import ValidationError

_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def parse_date(value: Union[str, date, None]) -> date:
    """ISO date (``2025-03-10``) or ISO datetime (date part is kept)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise ValidationError("Date is required. Use YYYY-MM-DD.")
    try:
        return isoparse(str(value).strip()).date()
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid date {value!r}. Use YYYY-MM-DD.") from None


def parse_slot_time(value: Union[str, time, None]) -> time:
    """Accepts ``9:00 AM``, ``09:00 am``, ``14:00`` and ``14:00:00``."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not value or not str(value).strip():
        raise ValidationError("Time is required, e.g. '9:00 AM'.")

    raw = str(value)
    m = _TIME_12H.match(raw)
    if m:
        hour, minute, meridiem = int(m.group(1)), int(m.group(2)), m.group(3).upper()
        if not 1 <= hour <= 12 or minute > 59:
            raise ValidationError(f"Invalid time {value!r}.")
        if meridiem == "PM" and hour != 12:
            hour += 12
        elif meridiem == "AM" and hour == 12:
            hour = 0
        return time(hour, minute)

    m = _TIME_24H.match(raw)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            raise ValidationError(f"Invalid time {value!r}.")
        return time(hour, minute)

    raise ValidationError(f"Invalid time {value!r}. Use e.g. '9:00 AM' or '14:00'.")


def format_display_time(value: Union[str, time]) -> str:
    """``time(14, 0)`` or ``"14:00"`` -> ``"2:00 PM"`` (no leading zero on the hour)."""
    t = value if isinstance(value, time) else parse_slot_time(value)
    meridiem = "PM" if t.hour >= 12 else "AM"
    hour = t.hour % 12 or 12
    return f"{hour}:{t.minute:02d} {meridiem}"


def format_long_date(d: date) -> str:
    """``date(2025, 3, 10)`` -> ``"March 10, 2025"``."""
    return f"{d:%B} {d.day}, {d.year}"


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday (slot definitions use this numbering)."""
    return (d.weekday() + 1) % 7


# ====== Time zones ======
def local_tz(tz_name: str):
    return pytz.timezone(tz_name)


def combine_local(d: date, t: time) -> datetime:
    """Naive local wall-clock datetime, as stored in ``Booking.scheduled_at``."""
    return datetime.combine(d, t)


def to_utc(naive_local: datetime, tz_name: str) -> datetime:
    """Localize a naive wall-clock datetime and convert it to aware UTC."""
    if naive_local.tzinfo is None:
        naive_local = local_tz(tz_name).localize(naive_local)
    return naive_local.astimezone(pytz.UTC)

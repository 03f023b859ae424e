# agency_booking/models.py
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Date, DateTime, Enum, Index, Integer,
    String, Text, Time, UniqueConstraint, text,
)
from datetime import date, datetime, time
import enum
from .database import Base


class ConsultationType(str, enum.Enum):
    video = "video"
    phone = "phone"
    in_person = "in-person"


class BookingStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


# Legal status moves; anything missing here is terminal
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.pending: frozenset({BookingStatus.confirmed, BookingStatus.cancelled}),
    BookingStatus.confirmed: frozenset({BookingStatus.completed, BookingStatus.cancelled, BookingStatus.no_show}),
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class SlotDefinition(Base):
    __tablename__ = "slot_definitions"
    __table_args__ = (
        UniqueConstraint("day_of_week", "start_time", name="uq_slot_definitions_day_start"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_slot_definitions_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class BlockedDate(Base):
    __tablename__ = "blocked_dates"
    __table_args__ = (
        CheckConstraint(
            "all_day OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="ck_blocked_dates_window",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one live booking per slot; cancelled rows stay for the audit trail
        Index(
            "uq_bookings_active_slot",
            "requested_date",
            "requested_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    booking_id: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    company: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    requested_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Canonical display label, e.g. "9:00 AM"
    requested_time: Mapped[str] = mapped_column(String(16), nullable=False)
    # Naive local wall-clock time (settings.TIMEZONE)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    consultation_type: Mapped[ConsultationType] = mapped_column(
        Enum(ConsultationType, name="consultation_type", values_callable=_enum_values),
        nullable=False,
    )
    project_details: Mapped[str] = mapped_column(Text, nullable=False)
    budget: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    timeline: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=_enum_values),
        default=BookingStatus.confirmed,
        nullable=False,
    )

    meeting_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    meeting_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    meeting_password: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    meeting_host_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_meeting(self) -> bool:
        return bool(self.meeting_url)

# agency_booking/schemas.py
from __future__ import annotations
import datetime as dt
from datetime import date, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import BookingStatus, ConsultationType
from .timeutils import parse_date, parse_slot_time


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConsultationRequest(_CamelModel):
    name: str = Field(min_length=2)
    email: EmailStr
    phone: str = Field(min_length=10)
    company: Optional[str] = None
    preferred_date: date = Field(alias="preferredDate")
    preferred_time: time = Field(alias="preferredTime")
    consultation_type: ConsultationType = Field(alias="consultationType")
    project_details: str = Field(alias="projectDetails", min_length=20)
    budget: Optional[str] = None
    timeline: Optional[str] = None

    @field_validator("preferred_date", mode="before")
    @classmethod
    def _date(cls, v):
        return parse_date(v)

    @field_validator("preferred_time", mode="before")
    @classmethod
    def _time(cls, v):
        return parse_slot_time(v)


class RescheduleRequest(_CamelModel):
    # Optional so a missing field reaches the handler and becomes a clean 400
    new_date: Optional[str] = Field(default=None, alias="newDate")
    new_time: Optional[str] = Field(default=None, alias="newTime")


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    notes: Optional[str] = None


class SlotDefinitionIn(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _slot_time(cls, v):
        return parse_slot_time(v)


class BlockedDateIn(BaseModel):
    date: dt.date
    reason: Optional[str] = None
    all_day: bool = True
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, v):
        return parse_date(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _window_time(cls, v):
        return None if v in (None, "") else parse_slot_time(v)


# ====== Responses ======
class SlotOut(BaseModel):
    time: str
    available: bool


class SlotsResponse(BaseModel):
    date: str
    slots: list[SlotOut]


class SlotDefinitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


class BlockedDateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: dt.date
    reason: Optional[str] = None
    all_day: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None

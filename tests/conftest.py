"""Shared test fixtures and fakes for the external collaborators."""

import os

# Keep the module-level engine away from a real database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, time
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agency_booking.database import get_db, init_db
from agency_booking.dependencies import get_calendar, get_dispatcher, get_provisioner
from agency_booking.errors import CalendarSyncError, NotifierError, ProvisionerAPIError
from agency_booking.main import app
from agency_booking.models import ConsultationType
from agency_booking.services.availability import AvailabilityResolver
from agency_booking.services.ledger import BookingInput, BookingLedger
from agency_booking.services.notifications import NotificationDispatcher
from agency_booking.services.orchestrator import BookingOrchestrator
from agency_booking.services.slot_catalog import SlotCatalog
from agency_booking.services.zoom import MeetingDetails

MONDAY = date(2025, 3, 10)
SATURDAY = date(2025, 3, 8)
SUNDAY = date(2025, 3, 9)


class FakeProvisioner:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created: list[dict] = []
        self.deleted: list[int] = []
        self._next_id = 85012345601

    def create_meeting(self, topic, start_time, duration_minutes=60, agenda=None, password=None):
        if self.fail:
            raise ProvisionerAPIError("Zoom is unreachable", status=503)
        meeting_id = self._next_id
        self._next_id += 1
        self.created.append({"topic": topic, "start_time": start_time, "duration": duration_minutes,
                             "meeting_id": meeting_id})
        return MeetingDetails(
            join_url=f"https://zoom.us/j/{meeting_id}",
            meeting_id=meeting_id,
            password="Abc23xyz",
            host_url=f"https://zoom.us/s/{meeting_id}",
        )

    def delete_meeting(self, meeting_id):
        if self.fail:
            raise ProvisionerAPIError("Zoom is unreachable", status=503)
        self.deleted.append(meeting_id)
        return True


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, to, subject, html, reply_to=None):
        if self.fail:
            raise NotifierError("mailbox on fire")
        self.sent.append({"to": to, "subject": subject, "html": html, "reply_to": reply_to})
        return f"msg-{len(self.sent)}"


class FakeCalendar:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: dict[str, datetime] = {}
        self.deleted: list[str] = []

    def create_event(self, summary, start_local, duration_min, description="", location=""):
        if self.fail:
            raise CalendarSyncError("calendar down")
        event_id = f"evt-{len(self.events) + 1}"
        self.events[event_id] = start_local
        return event_id

    def update_event(self, event_id, new_start_local, duration_min):
        if self.fail:
            raise CalendarSyncError("calendar down")
        self.events[event_id] = new_start_local
        return event_id

    def delete_event(self, event_id):
        if self.fail:
            raise CalendarSyncError("calendar down")
        self.deleted.append(event_id)
        self.events.pop(event_id, None)


def run_inline(fn, *args, **kwargs):
    fn(*args, **kwargs)


def make_input(
    requested_date: date = MONDAY,
    requested_time: time = time(9, 0),
    consultation_type: ConsultationType = ConsultationType.video,
    name: str = "Ada Lovelace",
    email: str = "ada@example.com",
    company: Optional[str] = "Analytical Engines",
) -> BookingInput:
    return BookingInput(
        name=name,
        email=email,
        phone="+1 555 010 0199",
        requested_date=requested_date,
        requested_time=requested_time,
        consultation_type=consultation_type,
        project_details="We need a booking site for our engine workshop.",
        company=company,
        budget="$5k-$10k",
        timeline="1-3 months",
    )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture
def catalog(db):
    return SlotCatalog(db)


@pytest.fixture
def resolver(db, catalog):
    return AvailabilityResolver(db, catalog=catalog, allow_off_schedule=False)


@pytest.fixture
def ledger(db, resolver):
    return BookingLedger(db, resolver=resolver)


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, spawn_fn=run_inline)


@pytest.fixture
def orchestrator(ledger, provisioner, dispatcher):
    return BookingOrchestrator(ledger, provisioner, dispatcher, calendar=None,
                               operator_email="ops@agency.test", meeting_duration_min=60)


@pytest.fixture
def client(db, provisioner, dispatcher):
    def _db():
        yield db

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_provisioner] = lambda: provisioner
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_calendar] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()

"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from lessonbook.checkout.session_store import AuthSessionStore, MemoryStorage, SessionStore
from lessonbook.checkout.state_machine import CheckoutStateMachine
from lessonbook.client import BackendClient
from lessonbook.config import AppConfig, BackendConfig
from lessonbook.schemas.booking_schema import (
    AvailabilityDay,
    AvailabilitySlot,
    BookingStatus,
    ExistingBooking,
    LessonRequest,
    LessonType,
)
from lessonbook.schemas.learner_schema import LearnerDetails

API = "https://api.test/api"
TEST_CONFIG = AppConfig(backend=BackendConfig(api_base_url=API))

TODAY = date(2025, 3, 10)
LESSON_DAY = date(2025, 3, 12)
DAY_HOURS = ["8:00 AM", "9:00 AM", "10:00 AM", "11:00 AM", "12:00 PM", "1:00 PM"]


def url(path: str) -> str:
    return f"{API}/{path}"


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def state_machine():
    return CheckoutStateMachine()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session_store(storage, clock):
    return SessionStore(storage, config=TEST_CONFIG, clock=clock)


@pytest.fixture
def auth_store(storage):
    return AuthSessionStore(storage, config=TEST_CONFIG)


@pytest.fixture
def client():
    return BackendClient(TEST_CONFIG)


def make_day(
    on: date = LESSON_DAY,
    open_times: Optional[list[str]] = None,
    closed_times: Optional[list[str]] = None,
) -> AvailabilityDay:
    """Helper to create an AvailabilityDay from open and closed labels."""
    open_times = DAY_HOURS if open_times is None else open_times
    slots = [AvailabilitySlot(time=t, available=True) for t in open_times]
    slots += [AvailabilitySlot(time=t, available=False) for t in closed_times or []]
    return AvailabilityDay(date=on, slots=slots)


def make_booking(
    start_time: str,
    on: date = LESSON_DAY,
    duration_hours: float = 1.0,
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> ExistingBooking:
    return ExistingBooking(
        date=on, start_time=start_time, duration_hours=duration_hours, status=status
    )


def make_lesson(
    lesson_id: int = 1,
    on: Optional[date] = LESSON_DAY,
    start_time: Optional[str] = "9:00 AM",
    lesson_type: LessonType = LessonType.ONE_HOUR,
    suburb: str = "Paddington",
    address: str = "12 Given Tce",
) -> LessonRequest:
    """Helper to create a fully scheduled LessonRequest."""
    return LessonRequest(
        id=lesson_id,
        lesson_type=lesson_type,
        date=on,
        start_time=start_time,
        pickup_suburb=suburb,
        pickup_address=address,
    )


def make_learner(**overrides) -> LearnerDetails:
    """Helper to create LearnerDetails that pass registration validation."""
    fields = dict(
        first_name="Sam",
        last_name="Taylor",
        email="sam@example.com",
        phone="0412 345 678",
        dob_day="04",
        dob_month="07",
        dob_year="2007",
        pickup_address="12 Given Tce",
        suburb="Paddington",
        learner_type="myself",
        password="secret1",
        confirm_password="secret1",
        terms_accepted=True,
    )
    fields.update(overrides)
    return LearnerDetails(**fields)


# --------------------------------------------------------------------------- #
# Backend payloads
# --------------------------------------------------------------------------- #


def instructor_payload(
    instructor_id: str = "inst-1",
    user_id: str = "user-inst-1",
    rate: float = 80,
) -> dict:
    return {
        "success": True,
        "data": {
            "_id": instructor_id,
            "user": {"_id": user_id, "firstName": "Jo", "lastName": "Reed"},
            "pricing": {"marketplaceLessonRate": rate},
            "serviceArea": {"suburbs": ["Paddington", "Red Hill"]},
        },
    }


def availability_payload(days: Optional[list[tuple[str, list[str]]]] = None) -> dict:
    """``days`` is a list of (ISO date, open labels)."""
    if days is None:
        days = [(LESSON_DAY.isoformat(), DAY_HOURS)]
    return {
        "success": True,
        "data": [
            {
                "date": on,
                "timeSlots": [{"time": t, "available": True} for t in labels],
            }
            for on, labels in days
        ],
    }


def bookings_payload(*bookings: tuple[str, str, float, str]) -> dict:
    """Each booking is (ISO date, start label, duration hours, status)."""
    return {
        "success": True,
        "data": [
            {
                "_id": f"bk-{i}",
                "status": status,
                "lesson": {"date": on, "startTime": start, "duration": duration},
            }
            for i, (on, start, duration, status) in enumerate(bookings)
        ],
    }


def user_payload(
    user_id: str = "user-learner-1",
    email: str = "sam@example.com",
    verified: bool = True,
) -> dict:
    return {
        "id": user_id,
        "email": email,
        "role": "learner",
        "firstName": "Sam",
        "lastName": "Taylor",
        "isEmailVerified": verified,
    }


def me_payload(**user_fields) -> dict:
    """``GET auth/me`` envelope: the account is nested under ``data.user``."""
    return {"success": True, "data": {"user": user_payload(**user_fields)}}

"""Availability, existing-booking, and lesson request data models."""

import datetime as dt
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from lessonbook.config import settings


def to_local_date(value: Any) -> Any:
    """Normalise a backend date or ISO timestamp to the instructor-local day."""
    if isinstance(value, dt.datetime):
        moment = value
    elif isinstance(value, str) and "T" in value:
        moment = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        return value
    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(settings.checkout.instructor_timezone))
    return moment.date()


class AvailabilitySlot(BaseModel):
    """One hourly atomic slot in an instructor's day."""
    time: str
    available: bool = False


class AvailabilityDay(BaseModel):
    """An instructor's slots for one calendar day. Read-only to the client."""
    model_config = ConfigDict(populate_by_name=True)

    date: dt.date
    slots: list[AvailabilitySlot] = Field(
        default_factory=list, validation_alias=AliasChoices("slots", "timeSlots")
    )

    @field_validator("date", mode="before")
    @classmethod
    def normalise_date(cls, value: Any) -> Any:
        return to_local_date(value)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


OCCUPYING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class ExistingBooking(BaseModel):
    """Snapshot of a booking already held against the instructor's calendar."""
    date: dt.date
    start_time: str
    duration_hours: float = 1.0
    status: BookingStatus = BookingStatus.PENDING

    @field_validator("date", mode="before")
    @classmethod
    def normalise_date(cls, value: Any) -> Any:
        return to_local_date(value)

    @property
    def occupies_capacity(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Optional["ExistingBooking"]:
        """Build from the backend's nested ``lesson`` shape; None when undated."""
        lesson = payload.get("lesson") or {}
        if not lesson.get("date") or not lesson.get("startTime"):
            return None
        return cls(
            date=lesson["date"],
            start_time=lesson["startTime"],
            duration_hours=lesson.get("duration") or 1,
            status=payload.get("status", BookingStatus.PENDING),
        )


class LessonType(str, Enum):
    ONE_HOUR = "1hour"
    TWO_HOUR = "2hour"
    TEST_PACKAGE = "test"

    @property
    def duration_hours(self) -> float:
        return LESSON_DURATIONS[self]

    @property
    def backend_type(self) -> str:
        return "test-package" if self is LessonType.TEST_PACKAGE else "lesson"


LESSON_DURATIONS: dict[LessonType, float] = {
    LessonType.ONE_HOUR: 1.0,
    LessonType.TWO_HOUR: 2.0,
    LessonType.TEST_PACKAGE: 2.5,
}


class LessonRequest(BaseModel):
    """A lesson the learner wants scheduled as part of checkout."""
    id: int
    lesson_type: LessonType = LessonType.ONE_HOUR
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    pickup_suburb: str = ""
    pickup_address: str = ""

    @property
    def duration_hours(self) -> float:
        return self.lesson_type.duration_hours

    @property
    def end_time(self) -> Optional[str]:
        if not self.start_time:
            return None
        from lessonbook.scheduling.time_parser import add_duration

        return add_duration(self.start_time, self.duration_hours)

    def missing_fields(self) -> list[str]:
        """Names of the schedulable fields still empty."""
        missing = []
        if self.date is None:
            missing.append("date")
        if not (self.start_time or "").strip():
            missing.append("start_time")
        if not self.pickup_suburb.strip():
            missing.append("pickup_suburb")
        if not self.pickup_address.strip():
            missing.append("pickup_address")
        return missing

    @property
    def is_blank(self) -> bool:
        return len(self.missing_fields()) == 4

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


class InstructorSummary(BaseModel):
    """The parts of an instructor profile the checkout needs."""
    id: str
    user_id: str
    name: str = ""
    hourly_rate: float = settings.checkout.default_hourly_rate
    suburbs: list[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InstructorSummary":
        user = data.get("user") or {}
        if isinstance(user, dict):
            user_id = user.get("_id") or ""
            name = f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()
        else:
            user_id, name = str(user), ""
        pricing = data.get("pricing") or {}
        service_area = data.get("serviceArea") or {}
        return cls(
            id=str(data["_id"]),
            user_id=str(user_id),
            name=name,
            hourly_rate=pricing.get("marketplaceLessonRate") or settings.checkout.default_hourly_rate,
            suburbs=service_area.get("suburbs") or [],
        )

"""
Single-lesson booking paid from a learner's existing lesson credits.

Used from the learner dashboard: the instructor is the learner's current
one (from their profile, else from their next upcoming booking) and the
slot rules are the same as in the full checkout.
"""

import asyncio
from datetime import date, timedelta
from typing import Any, Callable, Optional

from lessonbook.client import BackendClient
from lessonbook.config import AppConfig, settings
from lessonbook.errors import CheckoutError, NetworkError, NoCreditsError, ValidationError
from lessonbook.logging_context import get_checkout_logger
from lessonbook.payments.orchestrator import BookingContext, build_booking_payload
from lessonbook.scheduling.slot_resolver import available_dates, resolve_for_date
from lessonbook.schemas.booking_schema import (
    AvailabilityDay,
    ExistingBooking,
    InstructorSummary,
    LessonRequest,
    LessonType,
)
from lessonbook.utils import today_in

logger = get_checkout_logger(__name__)

FILL_ALL_FIELDS = "Please fill in all fields."
CREDITS_METHOD = "credits"


def _ref_id(value: Any) -> Optional[str]:
    """Backend references arrive either populated (a dict) or as a bare id."""
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    return str(value) if value else None


class QuickBook:
    """Books one lesson with the learner's current instructor using a credit."""

    def __init__(
        self,
        client: BackendClient,
        profile: dict[str, Any],
        user_id: str,
        config: AppConfig = settings,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.client = client
        self.profile = profile
        self.user_id = user_id
        self.config = config
        self._today = today or (lambda: today_in(config.checkout.instructor_timezone))

        self.instructor: Optional[InstructorSummary] = None
        self.availability: list[AvailabilityDay] = []
        self.bookings: list[ExistingBooking] = []
        self.lesson = LessonRequest(id=1)

    @property
    def credits(self) -> int:
        return int(self.profile.get("lessonCredits") or 0)

    async def resolve_instructor_id(self) -> Optional[str]:
        current = _ref_id(self.profile.get("currentInstructor"))
        if current:
            return current
        try:
            body = await self.client.get_learner_upcoming(self.user_id)
        except NetworkError as exc:
            logger.warning("Could not look up upcoming bookings: %s", exc)
            return None
        upcoming = body.get("data") or []
        if not upcoming:
            return None
        return _ref_id(upcoming[0].get("instructor"))

    async def load(self) -> bool:
        """Fetch the instructor and their schedule. False when there is none."""
        instructor_id = await self.resolve_instructor_id()
        if instructor_id is None:
            logger.info("No current instructor for learner %s", self.profile.get("_id"))
            return False

        body = await self.client.get_instructor(instructor_id)
        self.instructor = InstructorSummary.from_api(body.get("data") or {})

        start = self._today()
        end = start + timedelta(days=self.config.checkout.availability_window_days)
        availability, bookings = await asyncio.gather(
            self.client.get_availability(self.instructor.user_id, start, end),
            self.client.get_instructor_bookings(self.instructor.id),
        )
        self.availability = [
            AvailabilityDay.model_validate(day) for day in (availability.get("data") or [])
        ]
        parsed = (ExistingBooking.from_api(b) for b in (bookings.get("data") or []))
        self.bookings = [b for b in parsed if b is not None]
        return True

    def available_dates(self) -> list[date]:
        return available_dates(self.availability)

    def available_times(self) -> list[str]:
        if self.lesson.date is None:
            return []
        return resolve_for_date(
            self.availability, self.bookings, self.lesson.date, self.lesson.duration_hours
        )

    def set_date(self, on_date: date) -> None:
        if on_date != self.lesson.date:
            self.lesson = self.lesson.model_copy(update={"date": on_date, "start_time": None})

    def set_lesson_type(self, lesson_type: LessonType) -> None:
        if lesson_type != self.lesson.lesson_type:
            self.lesson = self.lesson.model_copy(
                update={"lesson_type": lesson_type, "start_time": None}
            )

    def set_time(self, start_time: str) -> None:
        self.lesson = self.lesson.model_copy(update={"start_time": start_time})

    def set_pickup(self, suburb: str, address: str) -> None:
        self.lesson = self.lesson.model_copy(
            update={"pickup_suburb": suburb, "pickup_address": address}
        )

    async def confirm(self) -> str:
        """
        Create the booking. Returns the new booking id.

        Raises:
            NoCreditsError: The learner has no credits left.
            ValidationError: A field is missing or the time is no longer free.
            NetworkError: The backend rejected the booking.
        """
        if self.credits <= 0:
            raise NoCreditsError("You have no lesson credits remaining.")
        if self.instructor is None:
            raise CheckoutError("No instructor found for quick booking")
        if not self.lesson.is_complete:
            raise ValidationError({"form": FILL_ALL_FIELDS})
        if self.lesson.start_time not in self.available_times():
            raise ValidationError({"start_time": "That time is no longer available"})

        context = BookingContext(
            instructor_id=self.instructor.id,
            learner_id=_ref_id(self.profile.get("_id")),
            hourly_rate=self.instructor.hourly_rate,
            payment_method=CREDITS_METHOD,
        )
        payload = build_booking_payload(self.lesson, context, payment_reference=None)
        body = await self.client.create_booking(payload)
        data = body.get("data") or {}
        booking_id = str(data.get("_id") or data.get("id") or "")
        logger.info(
            "Quick booking %s created with %s (%s credits before)",
            booking_id, self.instructor.id, self.credits,
        )
        return booking_id

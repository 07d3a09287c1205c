"""Checkout session, package selection, and booking commit models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from lessonbook.scheduling.pricing import discount_rate_for
from lessonbook.schemas.booking_schema import LessonRequest
from lessonbook.schemas.learner_schema import AuthState, LearnerDetails, LoginCredentials


class CheckoutStep(str, Enum):
    """Wizard steps in display order."""
    CONFIRM_INSTRUCTOR = "confirm_instructor"
    SELECT_PACKAGE = "select_package"
    SCHEDULE_LESSONS = "schedule_lessons"
    IDENTIFY = "identify"
    PAY = "pay"
    COMPLETE = "complete"

    @property
    def number(self) -> int:
        return list(CheckoutStep).index(self) + 1


class IdentifyMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class PackageKind(str, Enum):
    FIXED_10H = "fixed-10h"
    FIXED_6H = "fixed-6h"
    CUSTOM = "custom"


FIXED_PACKAGE_HOURS: dict[PackageKind, int] = {
    PackageKind.FIXED_10H: 10,
    PackageKind.FIXED_6H: 6,
}


class PackageSelection(BaseModel):
    """Chosen package. Hours and discount are derived, never set directly."""
    kind: Optional[PackageKind] = PackageKind.FIXED_10H
    custom_hours: int = 10

    @property
    def hours(self) -> int:
        if self.kind is None:
            return 0
        return FIXED_PACKAGE_HOURS.get(self.kind, self.custom_hours)

    @property
    def discount_rate(self) -> Decimal:
        return discount_rate_for(self.hours)

    @property
    def label(self) -> str:
        return f"{self.hours} hours"


def _default_lessons() -> list[LessonRequest]:
    return [LessonRequest(id=1)]


class CheckoutSession(BaseModel):
    """The wizard's complete in-progress state, persisted for resume."""
    instructor_id: str
    current_step: CheckoutStep = CheckoutStep.CONFIRM_INSTRUCTOR
    package: PackageSelection = Field(default_factory=PackageSelection)
    lesson_requests: list[LessonRequest] = Field(default_factory=_default_lessons)
    learner: LearnerDetails = Field(default_factory=LearnerDetails)
    login: LoginCredentials = Field(default_factory=LoginCredentials)
    identify_mode: IdentifyMode = IdentifyMode.REGISTER
    auth_state: AuthState = AuthState.GUEST
    saved_at: Optional[datetime] = None

    def scheduled_lessons(self) -> list[LessonRequest]:
        """Lesson requests with every field filled in."""
        return [lesson for lesson in self.lesson_requests if lesson.is_complete]


class CommittedBooking(BaseModel):
    """``index`` is the position in the checkout's lesson_requests, not among scheduled ones."""
    index: int
    lesson_id: Optional[int] = None
    booking_id: str


class BookingCommitResult(BaseModel):
    """Outcome of sequentially creating one booking per lesson request."""
    total: int
    committed: list[CommittedBooking] = Field(default_factory=list)
    failed_index: Optional[int] = None
    failure_message: Optional[str] = None
    not_attempted: list[int] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.failed_index is None and len(self.committed) == self.total


class PaymentOutcome(BaseModel):
    """A confirmed payment and the bookings committed against it."""
    payment_id: str
    amount: Decimal
    currency: str
    status: str
    commit: BookingCommitResult

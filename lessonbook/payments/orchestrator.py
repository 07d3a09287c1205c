"""
Payment orchestration: authorize, confirm with the processor, commit bookings.

Bookings are created one request at a time after the payment is
confirmed. There is no transactional commit on the backend, so a failure
part-way through is reported as a partial commit with enough detail for
support to reconcile by hand.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Sequence

from lessonbook.client import BackendClient
from lessonbook.config import AppConfig, settings
from lessonbook.errors import (
    AuthorizationError,
    NetworkError,
    PartialCommitError,
    ProcessorDeclineError,
)
from lessonbook.logging_context import get_checkout_logger
from lessonbook.messages import AUTHORIZATION_FAILED, decline_message
from lessonbook.payments.gateway import PaymentGateway
from lessonbook.scheduling.pricing import PricingQuote, lesson_price
from lessonbook.schemas.booking_schema import LessonRequest
from lessonbook.schemas.checkout_schema import (
    BookingCommitResult,
    CommittedBooking,
    PaymentOutcome,
)
from lessonbook.schemas.payment_schema import (
    DeclineCategory,
    LearnerIdentity,
    PaymentAttempt,
    PaymentPurpose,
)

logger = get_checkout_logger(__name__)


@dataclass(frozen=True)
class BookingContext:
    """Who a set of lesson bookings is between and how it is being paid."""

    instructor_id: str
    learner_id: Optional[str]
    hourly_rate: float
    quote: Optional[PricingQuote] = None
    payment_method: str = "credit-card"


def build_booking_payload(
    lesson: LessonRequest,
    context: BookingContext,
    payment_reference: Optional[str],
) -> dict[str, Any]:
    """Backend ``POST bookings`` body for a single lesson."""
    location = {
        "address": lesson.pickup_address,
        "suburb": lesson.pickup_suburb,
        "postcode": "",
        "coordinates": {"lat": 0, "lng": 0},
    }
    base = lesson_price(context.hourly_rate, lesson.duration_hours)
    pricing: dict[str, Any] = {
        "baseRate": float(base),
        "platformFee": 0,
        "gst": 0,
        "totalAmount": float(base),
        "instructorPayout": float(base),
    }
    if context.quote is not None:
        pricing["package"] = {
            "hours": context.quote.hours,
            "totalAmount": float(context.quote.total),
            "discount": float(context.quote.discount),
            "processingFee": float(context.quote.processing_fee),
        }
    return {
        "learner": context.learner_id,
        "instructor": context.instructor_id,
        "bookingType": lesson.lesson_type.backend_type,
        "lesson": {
            "date": lesson.date.isoformat() if lesson.date else None,
            "startTime": lesson.start_time,
            "endTime": lesson.end_time,
            "duration": lesson.duration_hours,
            "pickupLocation": location,
            "dropoffLocation": dict(location),
            "notes": "",
        },
        "pricing": pricing,
        "payment": {
            "status": "paid",
            "method": context.payment_method,
            "paymentIntentId": payment_reference,
        },
        "status": "confirmed",
    }


def _booking_id(body: dict[str, Any]) -> str:
    data = body.get("data") or {}
    return str(data.get("_id") or data.get("id") or "")


class PaymentOrchestrator:
    """Runs one payment attempt end to end. Never retries on its own."""

    def __init__(
        self,
        client: BackendClient,
        gateway: PaymentGateway,
        config: AppConfig = settings,
    ) -> None:
        self.client = client
        self.gateway = gateway
        self.config = config

    async def authorize(self, attempt: PaymentAttempt) -> PaymentAttempt:
        """Ask the backend for a payment authorization (client secret)."""
        try:
            body = await self.client.create_payment_intent(
                attempt.amount, attempt.currency, attempt.metadata()
            )
        except NetworkError as exc:
            logger.warning("Payment authorization rejected: %s", exc)
            raise AuthorizationError(AUTHORIZATION_FAILED) from exc

        client_secret = body.get("clientSecret")
        if not client_secret:
            logger.warning("Payment authorization returned no client secret")
            raise AuthorizationError(AUTHORIZATION_FAILED)

        return attempt.model_copy(
            update={
                "client_secret": client_secret,
                "external_authorization_id": body.get("paymentIntentId"),
            }
        )

    async def commit_bookings(
        self,
        lessons: Sequence[LessonRequest],
        context: BookingContext,
        payment_reference: Optional[str],
    ) -> BookingCommitResult:
        """
        Create one booking per scheduled lesson, strictly in order, stopping at the first failure.

        Blank requests are skipped. Indexes in the result (and in the
        idempotency key) are positions in ``lessons``, so they always name
        the learner's own lesson request.
        """
        scheduled = [(index, lesson) for index, lesson in enumerate(lessons) if lesson.is_complete]
        result = BookingCommitResult(total=len(scheduled))
        for position, (index, lesson) in enumerate(scheduled):
            payload = build_booking_payload(lesson, context, payment_reference)
            key = f"{payment_reference}-{index}" if payment_reference else None
            try:
                body = await self.client.create_booking(payload, idempotency_key=key)
            except NetworkError as exc:
                result.failed_index = index
                result.failure_message = str(exc)
                result.not_attempted = [later for later, _ in scheduled[position + 1:]]
                break
            booking_id = _booking_id(body)
            result.committed.append(
                CommittedBooking(index=index, lesson_id=lesson.id, booking_id=booking_id)
            )
            logger.info("Booking %d/%d created: %s", position + 1, len(scheduled), booking_id)
        return result

    async def pay(
        self,
        amount: Decimal,
        learner: LearnerIdentity,
        purpose: PaymentPurpose,
        lessons: Sequence[LessonRequest],
        context: BookingContext,
        credits: Optional[int] = None,
        save_payment_method: bool = True,
    ) -> PaymentOutcome:
        """
        Authorize, confirm, and commit bookings for one checkout.

        Raises:
            AuthorizationError: The backend refused before any card interaction.
            ProcessorDeclineError: The card was declined; nothing was booked.
            PartialCommitError: Payment went through but some bookings failed.
        """
        attempt = PaymentAttempt(
            amount=amount,
            currency=self.config.checkout.currency,
            learner=learner,
            purpose=purpose,
            credits=credits,
        )
        attempt = await self.authorize(attempt)

        processed = await self.gateway.confirm_card_payment(
            attempt.client_secret, learner, save_payment_method
        )
        if not processed.succeeded:
            category = DeclineCategory.from_code(processed.decline_code)
            logger.warning(
                "Payment declined (%s) for %s: %s",
                category.value, learner.email, processed.message,
            )
            raise ProcessorDeclineError(category, decline_message(category))

        payment_id = processed.payment_id or attempt.external_authorization_id or ""
        logger.info("Payment %s confirmed for %s %s", payment_id, amount, attempt.currency)

        commit = await self.commit_bookings(lessons, context, payment_id)
        if not commit.is_complete:
            logger.error(
                "Partial commit for payment %s (learner %s, instructor %s): "
                "committed=%s failed=%s (%s) not_attempted=%s",
                payment_id,
                learner.account_id or learner.email,
                context.instructor_id,
                [(c.index, c.booking_id) for c in commit.committed],
                commit.failed_index,
                commit.failure_message,
                commit.not_attempted,
            )
            raise PartialCommitError(commit, payment_id)

        return PaymentOutcome(
            payment_id=payment_id,
            amount=amount,
            currency=attempt.currency,
            status=processed.status,
            commit=commit,
        )

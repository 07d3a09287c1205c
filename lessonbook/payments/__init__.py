from lessonbook.payments.gateway import PaymentGateway, StubGateway
from lessonbook.payments.orchestrator import (
    BookingContext,
    PaymentOrchestrator,
    build_booking_payload,
)

__all__ = [
    "PaymentGateway",
    "StubGateway",
    "PaymentOrchestrator",
    "BookingContext",
    "build_booking_payload",
]

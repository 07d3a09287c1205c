"""Exception taxonomy for the checkout core.

Validation and network errors stay local to a wizard step; payment
errors are translated into plain-language messages before display.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from lessonbook.schemas.checkout_schema import BookingCommitResult
    from lessonbook.schemas.payment_schema import DeclineCategory


class CheckoutError(Exception):
    """Base class for every error raised by the checkout core."""


class ValidationError(CheckoutError):
    """Local, per-field validation failure. Never sent to the network."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = dict(field_errors)
        fields = ", ".join(sorted(self.field_errors))
        super().__init__(f"Validation failed for: {fields}")


class NetworkError(CheckoutError):
    """A backend call failed or returned a non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthorizationError(CheckoutError):
    """The backend refused to create a payment authorization."""


class ProcessorDeclineError(CheckoutError):
    """The payment processor declined the card. No bookings were created."""

    def __init__(self, category: "DeclineCategory", message: str) -> None:
        self.category = category
        super().__init__(message)


class PartialCommitError(CheckoutError):
    """Payment succeeded but not every lesson booking could be created."""

    def __init__(self, result: "BookingCommitResult", payment_id: str) -> None:
        self.result = result
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} succeeded but only "
            f"{len(result.committed)} of {result.total} bookings were created"
        )


class SessionNotLoadedError(CheckoutError):
    """A save was attempted before the stored session had been loaded."""


class WizardBusyError(CheckoutError):
    """A step action was triggered while a request for it is in flight."""


class NoCreditsError(CheckoutError):
    """The learner has no lesson credits left for a quick booking."""

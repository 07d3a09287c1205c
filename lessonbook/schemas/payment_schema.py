"""Payment authorization and processor result models."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class PaymentPurpose(str, Enum):
    PACKAGE_PURCHASE = "package_purchase"
    SINGLE_BOOKING = "single_booking"


class DeclineCategory(str, Enum):
    """User-facing buckets for processor decline reasons."""
    CARD_DECLINED = "card_declined"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INCORRECT_CVC = "incorrect_cvc"
    EXPIRED_CARD = "expired_card"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "DeclineCategory":
        try:
            return cls(code)
        except ValueError:
            return cls.OTHER


class LearnerIdentity(BaseModel):
    """Who is paying, as sent in payment metadata and billing details."""
    account_id: Optional[str] = None
    email: str
    name: str
    phone: str = ""


class PaymentAttempt(BaseModel):
    """One checkout payment attempt. Ephemeral and never retried automatically."""
    amount: Decimal
    currency: str
    learner: LearnerIdentity
    purpose: PaymentPurpose
    credits: Optional[int] = None
    external_authorization_id: Optional[str] = None
    client_secret: Optional[str] = None

    def metadata(self) -> dict[str, Any]:
        """Metadata block for the payment-intent request."""
        data: dict[str, Any] = {
            "learnerEmail": self.learner.email,
            "learnerName": self.learner.name,
            "learnerPhone": self.learner.phone or "Not provided",
            "learnerId": self.learner.account_id,
            "type": self.purpose.value,
        }
        if self.credits is not None:
            data["credits"] = str(self.credits)
        return data


class ProcessorResult(BaseModel):
    """What the payment processor reported after card confirmation."""
    succeeded: bool
    payment_id: Optional[str] = None
    status: str = ""
    amount_cents: Optional[int] = None
    decline_code: Optional[str] = None
    message: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)

"""Plain-language messages shown to learners.

Raw processor codes and backend errors are translated here before they
reach the UI.
"""

from typing import Optional

from lessonbook.schemas.checkout_schema import BookingCommitResult
from lessonbook.schemas.payment_schema import DeclineCategory

DECLINE_MESSAGES: dict[DeclineCategory, str] = {
    DeclineCategory.CARD_DECLINED: "Your card was declined. Please try a different payment method.",
    DeclineCategory.INSUFFICIENT_FUNDS: "Insufficient funds. Please use a different card.",
    DeclineCategory.INCORRECT_CVC: "Incorrect CVC code. Please check and try again.",
    DeclineCategory.EXPIRED_CARD: "Your card has expired. Please use a different card.",
    DeclineCategory.OTHER: "Payment failed. Please try again.",
}

AUTHORIZATION_FAILED = "We couldn't start the payment. No money has been taken. Please try again."
NETWORK_FAILED = "Something went wrong. Please check your connection and try again."
VERIFICATION_PENDING = "We've sent a verification link to {email}. This page will continue once it's confirmed."


def decline_message(category: DeclineCategory) -> str:
    return DECLINE_MESSAGES[category]


def network_message(detail: Optional[str] = None) -> str:
    """Banner text for a failed backend call, preferring the server's own message."""
    return detail or NETWORK_FAILED


def partial_commit_message(result: BookingCommitResult) -> str:
    """Banner text for a payment that went through with only some lessons booked."""
    booked = len(result.committed)
    if booked == 0:
        return (
            "Your payment was successful but we couldn't save your lesson bookings. "
            "Please contact support - your payment is safe and we'll book them for you."
        )
    return (
        f"Your payment was successful and {booked} of {result.total} lessons "
        "were booked, but the rest could not be saved. "
        "Please contact support to finish booking the remaining lessons."
    )

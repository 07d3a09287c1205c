"""
Package pricing: subtotal, tiered discount, processing fee, and total due.

Discount is a pure function of the number of hours. The processing fee is
always charged on the post-discount amount.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from pydantic import BaseModel

from lessonbook.config import settings

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")

# (minimum hours, discount rate), checked top-down
DISCOUNT_TIERS: list[tuple[int, Decimal]] = [
    (10, Decimal("0.10")),
    (6, Decimal("0.05")),
]


class PricingQuote(BaseModel):
    """Derived price breakdown for a number of lesson hours."""

    hourly_rate: Decimal
    hours: int
    subtotal: Decimal
    discount_rate: Decimal
    discount: Decimal
    processing_fee: Decimal
    total: Decimal
    installment_count: int
    installment_amount: Decimal


def _to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def discount_rate_for(hours: int) -> Decimal:
    """Tiered discount: 10% from 10 hours, 5% from 6 hours, else nothing."""
    for minimum, rate in DISCOUNT_TIERS:
        if hours >= minimum:
            return rate
    return Decimal("0")


def quote(hourly_rate: Number, hours: int) -> PricingQuote:
    """
    Price a package of ``hours`` lesson hours at ``hourly_rate``.

    Raises:
        ValueError: If the rate is not positive or hours is below 1.
    """
    rate = _to_decimal(hourly_rate)
    if rate <= 0:
        raise ValueError(f"Hourly rate must be positive, got {hourly_rate}")
    if hours < 1:
        raise ValueError(f"Hours must be at least 1, got {hours}")

    fee_rate = _to_decimal(settings.checkout.processing_fee_rate)
    count = settings.checkout.installment_count

    subtotal = rate * hours
    discount_rate = discount_rate_for(hours)
    discount = subtotal * discount_rate
    processing_fee = (subtotal - discount) * fee_rate
    total = subtotal - discount + processing_fee

    return PricingQuote(
        hourly_rate=rate,
        hours=hours,
        subtotal=_cents(subtotal),
        discount_rate=discount_rate,
        discount=_cents(discount),
        processing_fee=_cents(processing_fee),
        total=_cents(total),
        installment_count=count,
        installment_amount=_cents(total / count),
    )


def lesson_price(hourly_rate: Number, duration_hours: float) -> Decimal:
    """Undiscounted price of a single lesson, used in booking payloads."""
    return _cents(_to_decimal(hourly_rate) * _to_decimal(duration_hours))

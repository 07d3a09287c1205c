from lessonbook.scheduling.pricing import PricingQuote, discount_rate_for, quote
from lessonbook.scheduling.slot_resolver import available_dates, resolve, resolve_for_date
from lessonbook.scheduling.time_parser import TimeFormatError, add_duration, to_minutes

__all__ = [
    "resolve",
    "resolve_for_date",
    "available_dates",
    "quote",
    "discount_rate_for",
    "PricingQuote",
    "to_minutes",
    "add_duration",
    "TimeFormatError",
]

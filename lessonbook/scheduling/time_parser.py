"""
Conversion between 12-hour display labels ("8:00 AM") and minute offsets.

Availability and bookings arrive from the backend as display labels; all
arithmetic happens on integer minutes since midnight and is formatted back
for display.
"""

import re

MINUTES_PER_DAY = 24 * 60

_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)


class TimeFormatError(ValueError):
    """Raised when a label does not match ``H:MM AM|PM``."""


def to_minutes(label: str) -> int:
    """Parse a 12-hour label into minutes since midnight, in [0, 1440).

    Raises:
        TimeFormatError: If the label is not ``H:MM AM|PM``.
    """
    match = _LABEL_RE.match(label or "")
    if not match:
        raise TimeFormatError(f"Unrecognised time label: {label!r}")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(3).upper()
    if not 1 <= hours <= 12 or minutes > 59:
        raise TimeFormatError(f"Time label out of range: {label!r}")

    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return hours * 60 + minutes


def from_minutes(minutes: int) -> str:
    """Format minutes since midnight as a 12-hour label, wrapping past midnight."""
    minutes = int(minutes) % MINUTES_PER_DAY
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display = hours % 12 or 12
    return f"{display}:{mins:02d} {period}"


def add_duration(label: str, hours: float) -> str:
    """Return the label ``hours`` after ``label``. Fractional hours are allowed."""
    return from_minutes(to_minutes(label) + round(hours * 60))


def is_valid_label(label: str) -> bool:
    try:
        to_minutes(label)
    except TimeFormatError:
        return False
    return True

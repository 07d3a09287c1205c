"""
Bookable slot resolution from raw availability and existing bookings.

An instructor's day is a list of hourly atomic slots marked open or closed.
A start time is bookable for a duration when every hourly boundary inside
the lesson is open and the lesson does not overlap a pending or confirmed
booking. Both the checkout wizard and the quick-book flow resolve slots
through ``resolve_for_date``.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from lessonbook.schemas.booking_schema import AvailabilityDay, ExistingBooking
from lessonbook.scheduling.time_parser import TimeFormatError, from_minutes, to_minutes

logger = logging.getLogger(__name__)

# Atomic availability granularity
SLOT_MINUTES = 60


def _open_minutes(day: AvailabilityDay) -> list[int]:
    """Open slot start minutes for a day, sorted ascending and de-duplicated."""
    opened: set[int] = set()
    for slot in day.slots:
        if not slot.available:
            continue
        try:
            opened.add(to_minutes(slot.time))
        except TimeFormatError:
            logger.warning("Skipping unparseable availability slot %r on %s", slot.time, day.date)
    return sorted(opened)


def _booked_intervals(bookings: Iterable[ExistingBooking]) -> list[tuple[int, int]]:
    intervals = []
    for booking in bookings:
        if not booking.occupies_capacity:
            continue
        try:
            start = to_minutes(booking.start_time)
        except TimeFormatError:
            logger.warning(
                "Skipping booking with unparseable start %r on %s",
                booking.start_time, booking.date,
            )
            continue
        intervals.append((start, start + round(booking.duration_hours * 60)))
    return intervals


def _has_coverage(start: int, duration_minutes: int, opened: set[int]) -> bool:
    # Only whole-hour boundaries are checked; a trailing half hour rides on
    # the last open slot.
    current = start
    while current < start + duration_minutes:
        if current not in opened:
            return False
        current += SLOT_MINUTES
    return True


def resolve(
    day: Optional[AvailabilityDay],
    bookings: Iterable[ExistingBooking],
    duration_hours: float,
) -> list[str]:
    """
    Compute bookable start times for one day.

    Args:
        day: The instructor's availability for the day (None means no record).
        bookings: Existing bookings for the same day. Only pending and
            confirmed bookings block capacity.
        duration_hours: Requested lesson length; fractional values allowed.

    Returns:
        Display labels in ascending chronological order.
    """
    if day is None or duration_hours <= 0:
        return []

    starts = _open_minutes(day)
    if not starts:
        return []

    duration_minutes = round(duration_hours * 60)
    opened = set(starts)
    covered = [s for s in starts if _has_coverage(s, duration_minutes, opened)]

    booked = _booked_intervals(b for b in bookings if b.date == day.date)
    if booked:
        covered = [
            s for s in covered
            if not any(s < end and s + duration_minutes > begin for begin, end in booked)
        ]

    return [from_minutes(s) for s in covered]


def find_day(days: Iterable[AvailabilityDay], on_date: date) -> Optional[AvailabilityDay]:
    """Return the availability record for a calendar day, if any."""
    for day in days:
        if day.date == on_date:
            return day
    return None


def available_dates(days: Iterable[AvailabilityDay]) -> list[date]:
    """Dates with at least one open slot, sorted chronologically."""
    return sorted({d.date for d in days if any(s.available for s in d.slots)})


def bookings_on(bookings: Iterable[ExistingBooking], on_date: date) -> list[ExistingBooking]:
    """Occupying bookings that fall on the given day."""
    return [b for b in bookings if b.date == on_date and b.occupies_capacity]


def resolve_for_date(
    days: Iterable[AvailabilityDay],
    bookings: Iterable[ExistingBooking],
    on_date: Optional[date],
    duration_hours: float,
) -> list[str]:
    """Resolve bookable starts for a date against a fetched snapshot."""
    if on_date is None:
        return []
    return resolve(find_day(days, on_date), bookings_on(bookings, on_date), duration_hours)

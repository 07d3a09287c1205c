"""Tests for bookable slot resolution."""

from datetime import date

import pytest

from lessonbook.scheduling.slot_resolver import (
    available_dates,
    find_day,
    resolve,
    resolve_for_date,
)
from lessonbook.scheduling.time_parser import to_minutes
from lessonbook.schemas.booking_schema import AvailabilityDay, BookingStatus, ExistingBooking
from tests.conftest import LESSON_DAY, make_booking, make_day

MORNING = ["9:00 AM", "10:00 AM", "11:00 AM", "12:00 PM"]


class TestCoverage:
    def test_one_hour_returns_every_open_slot(self):
        day = make_day(open_times=MORNING)
        assert resolve(day, [], 1) == MORNING

    def test_two_hours_needs_next_slot_open(self):
        day = make_day(open_times=MORNING)
        assert resolve(day, [], 2) == ["9:00 AM", "10:00 AM", "11:00 AM"]

    def test_gap_breaks_coverage(self):
        day = make_day(open_times=["9:00 AM", "11:00 AM", "12:00 PM"], closed_times=["10:00 AM"])
        assert resolve(day, [], 2) == ["11:00 AM"]

    def test_fractional_duration_checks_whole_hour_boundaries(self):
        day = make_day(open_times=["9:00 AM", "10:00 AM", "11:00 AM"])
        assert resolve(day, [], 2.5) == ["9:00 AM"]

    def test_every_result_has_full_coverage(self):
        day = make_day(open_times=["8:00 AM", "9:00 AM", "11:00 AM", "12:00 PM", "1:00 PM"])
        opened = {to_minutes(s.time) for s in day.slots if s.available}
        for label in resolve(day, [], 2):
            start = to_minutes(label)
            assert {start, start + 60} <= opened


class TestBookedConflicts:
    def test_two_hour_lesson_around_confirmed_booking(self):
        day = make_day(open_times=MORNING)
        bookings = [make_booking("10:00 AM")]
        assert resolve(day, bookings, 2) == ["11:00 AM"]

    def test_booking_blocks_its_own_start(self):
        day = make_day(open_times=MORNING)
        assert "10:00 AM" not in resolve(day, [make_booking("10:00 AM")], 1)

    def test_long_booking_blocks_every_hour_it_spans(self):
        day = make_day(open_times=MORNING)
        bookings = [make_booking("9:00 AM", duration_hours=2)]
        assert resolve(day, bookings, 1) == ["11:00 AM", "12:00 PM"]

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW],
    )
    def test_non_occupying_bookings_ignored(self, status):
        day = make_day(open_times=MORNING)
        assert resolve(day, [make_booking("10:00 AM", status=status)], 1) == MORNING

    def test_pending_booking_blocks(self):
        day = make_day(open_times=MORNING)
        bookings = [make_booking("10:00 AM", status=BookingStatus.PENDING)]
        assert "10:00 AM" not in resolve(day, bookings, 1)

    def test_bookings_on_other_days_ignored(self):
        day = make_day(open_times=MORNING)
        bookings = [make_booking("10:00 AM", on=date(2025, 3, 13))]
        assert resolve(day, bookings, 1) == MORNING


class TestEdgeCases:
    def test_no_day_record(self):
        assert resolve(None, [], 1) == []

    def test_all_slots_closed(self):
        day = make_day(open_times=[], closed_times=MORNING)
        assert resolve(day, [], 1) == []

    def test_non_positive_duration(self):
        assert resolve(make_day(), [], 0) == []

    def test_unparseable_slot_is_skipped_not_midnight(self):
        day = make_day(open_times=["late", "9:00 AM"])
        assert resolve(day, [], 1) == ["9:00 AM"]

    def test_output_sorted_even_when_input_is_not(self):
        day = make_day(open_times=["12:00 PM", "9:00 AM", "11:00 AM", "10:00 AM"])
        assert resolve(day, [], 1) == MORNING

    def test_deterministic(self):
        day = make_day(open_times=MORNING)
        bookings = [make_booking("11:00 AM")]
        assert resolve(day, bookings, 2) == resolve(day, bookings, 2)


class TestSnapshotHelpers:
    def test_available_dates_skip_fully_closed_days(self):
        days = [
            make_day(on=date(2025, 3, 14)),
            make_day(on=date(2025, 3, 13), open_times=[], closed_times=MORNING),
            make_day(on=date(2025, 3, 12)),
        ]
        assert available_dates(days) == [date(2025, 3, 12), date(2025, 3, 14)]

    def test_find_day(self):
        days = [make_day(on=date(2025, 3, 12)), make_day(on=date(2025, 3, 13))]
        assert find_day(days, date(2025, 3, 13)).date == date(2025, 3, 13)
        assert find_day(days, date(2025, 3, 20)) is None

    def test_resolve_for_date_without_date(self):
        assert resolve_for_date([make_day()], [], None, 1) == []

    def test_resolve_for_date_filters_bookings(self):
        bookings = [make_booking("9:00 AM"), make_booking("10:00 AM", on=date(2025, 3, 13))]
        result = resolve_for_date([make_day(open_times=MORNING)], bookings, LESSON_DAY, 1)
        assert result == ["10:00 AM", "11:00 AM", "12:00 PM"]


class TestBackendShapes:
    def test_timeslots_alias(self):
        day = AvailabilityDay.model_validate(
            {"date": "2025-03-12", "timeSlots": [{"time": "9:00 AM", "available": True}]}
        )
        assert day.slots[0].time == "9:00 AM"

    def test_utc_timestamp_becomes_instructor_local_day(self):
        day = AvailabilityDay.model_validate({"date": "2025-03-11T14:00:00.000Z", "slots": []})
        assert day.date == date(2025, 3, 12)

    def test_booking_from_api(self):
        booking = ExistingBooking.from_api(
            {"status": "confirmed", "lesson": {"date": "2025-03-12", "startTime": "9:00 AM", "duration": 2}}
        )
        assert booking.duration_hours == 2
        assert booking.occupies_capacity

    def test_undated_booking_skipped(self):
        assert ExistingBooking.from_api({"status": "pending", "lesson": {}}) is None

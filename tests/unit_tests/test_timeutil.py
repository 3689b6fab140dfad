"""Tests for the wall-clock helpers."""

from datetime import date, timedelta

import pytest

from stadium_booking.errors import InvalidTimeRange
from stadium_booking.services.timeutil import (
    day_of_week,
    duration_hours,
    hours_until,
    local_start,
    overlaps,
    to_minutes,
    validate_range,
)
from tests.mocks.models import NOW, TOMORROW


class TestParsing:
    def test_to_minutes(self):
        assert to_minutes("00:00") == 0
        assert to_minutes("10:30") == 630
        assert to_minutes("23:59") == 1439

    @pytest.mark.parametrize("value", ["24:00", "9:00", "10:60", "", "10.30", "ten"])
    def test_malformed_time_rejected(self, value):
        with pytest.raises(InvalidTimeRange):
            to_minutes(value)

    def test_end_must_follow_start(self):
        validate_range("10:00", "10:30")
        with pytest.raises(InvalidTimeRange):
            validate_range("12:00", "12:00")
        with pytest.raises(InvalidTimeRange):
            validate_range("12:00", "11:00")

    def test_fractional_duration(self):
        assert duration_hours("10:00", "12:00") == 2
        assert duration_hours("10:00", "11:30") == 1.5


class TestOverlap:
    def test_touching_ranges_do_not_overlap(self):
        assert overlaps("10:00", "11:00", "11:00", "12:00") is False
        assert overlaps("11:00", "12:00", "10:00", "11:00") is False

    def test_partial_and_nested_ranges_overlap(self):
        assert overlaps("10:00", "12:00", "11:00", "13:00") is True
        assert overlaps("10:00", "14:00", "11:00", "12:00") is True
        assert overlaps("11:00", "12:00", "10:00", "14:00") is True


class TestCalendar:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2026, 3, 1)) == 0
        assert day_of_week(date(2026, 3, 2)) == 1
        assert day_of_week(date(2026, 3, 7)) == 6

    def test_hours_until_uses_local_time(self):
        assert hours_until(TOMORROW, "09:00", NOW) == 24
        assert hours_until(TOMORROW, "10:30", NOW) == 25.5

    def test_local_start_is_aware(self):
        start = local_start(TOMORROW, "09:00")
        assert start.tzinfo is not None
        assert start - NOW == timedelta(hours=24)

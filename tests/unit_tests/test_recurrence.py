"""Tests for the recurrence generator."""

from datetime import date

import pytest

from stadium_booking.services.recurrence import first_on_or_after, generate, next_date

WEDNESDAY = 3


class TestNextDate:
    def test_weekly_and_biweekly(self):
        assert next_date(date(2026, 3, 4), "weekly") == date(2026, 3, 11)
        assert next_date(date(2026, 3, 4), "biweekly") == date(2026, 3, 18)

    def test_monthly_clamps_to_month_end(self):
        assert next_date(date(2026, 1, 15), "monthly") == date(2026, 2, 15)
        assert next_date(date(2026, 1, 31), "monthly") == date(2026, 2, 28)
        assert next_date(date(2028, 1, 31), "monthly") == date(2028, 2, 29)

    def test_unknown_pattern(self):
        with pytest.raises(ValueError):
            next_date(date(2026, 3, 4), "daily")


class TestGenerate:
    def test_advances_to_requested_weekday(self):
        assert first_on_or_after(date(2026, 3, 2), WEDNESDAY) == date(2026, 3, 4)
        assert first_on_or_after(date(2026, 3, 4), WEDNESDAY) == date(2026, 3, 4)
        assert first_on_or_after(date(2026, 3, 5), WEDNESDAY) == date(2026, 3, 11)

    def test_weekly_with_count(self):
        dates = list(generate(date(2026, 3, 2), None, WEDNESDAY, "weekly", max_occurrences=4))
        assert dates == [date(2026, 3, 4), date(2026, 3, 11), date(2026, 3, 18), date(2026, 3, 25)]

    def test_biweekly(self):
        dates = list(generate(date(2026, 3, 2), None, WEDNESDAY, "biweekly", max_occurrences=3))
        assert dates == [date(2026, 3, 4), date(2026, 3, 18), date(2026, 4, 1)]

    def test_end_date_is_inclusive(self):
        dates = list(generate(date(2026, 3, 2), date(2026, 3, 18), WEDNESDAY, "weekly"))
        assert dates == [date(2026, 3, 4), date(2026, 3, 11), date(2026, 3, 18)]

    def test_end_before_first_occurrence(self):
        assert list(generate(date(2026, 3, 2), date(2026, 3, 3), WEDNESDAY, "weekly")) == []

    def test_default_cap_without_end_date(self):
        dates = list(generate(date(2026, 3, 2), None, WEDNESDAY, "weekly"))
        assert len(dates) == 52
        assert len(set(dates)) == 52

    def test_monthly_is_anchored_on_first_date(self):
        saturday = 6
        dates = list(generate(date(2026, 1, 31), None, saturday, "monthly", max_occurrences=4))
        assert dates == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

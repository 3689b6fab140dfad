"""Tests for referee matching."""

from hypothesis import given
from hypothesis import strategies as st

from stadium_booking.services.referees import get_available_referees, pick_referee
from stadium_booking.services.timeutil import day_of_week
from tests.mocks.models import TOMORROW, make_staff

TUESDAY = 2

MORNING = make_staff("Morning", windows=[(TUESDAY, "08:00", "12:00")])
EVENING = make_staff("Evening", windows=[(TUESDAY, "16:00", "22:00")])


class TestGetAvailableReferees:
    def test_window_must_contain_whole_range(self):
        assert get_available_referees([MORNING], TOMORROW, "10:00", "12:00") == [MORNING]
        assert get_available_referees([MORNING], TOMORROW, "08:00", "09:00") == [MORNING]
        # overlaps the window but runs past its end
        assert get_available_referees([MORNING], TOMORROW, "11:00", "13:00") == []
        # starts before the window opens
        assert get_available_referees([MORNING], TOMORROW, "07:00", "09:00") == []

    def test_weekday_must_match(self):
        other_day = make_staff("Monday", windows=[(1, "08:00", "22:00")])
        assert get_available_referees([other_day], TOMORROW, "10:00", "12:00") == []

    def test_only_active_referees(self):
        manager = make_staff("Manager", role="manager")
        suspended = make_staff("Suspended", status="suspended")
        inactive = make_staff("Inactive", status="inactive")
        assert get_available_referees([manager, suspended, inactive], TOMORROW, "10:00", "12:00") == []

    def test_unavailable_window_ignored(self):
        member = make_staff("Off", windows=[])
        member.availability = [
            w.model_copy(update={"is_available": False})
            for w in make_staff("tmp", windows=[(TUESDAY, "08:00", "22:00")]).availability
        ]
        assert get_available_referees([member], TOMORROW, "10:00", "12:00") == []

    def test_directory_order_preserved(self):
        all_day_a = make_staff("A")
        all_day_b = make_staff("B")
        assert get_available_referees([all_day_b, EVENING, all_day_a], TOMORROW, "18:00", "20:00") == [
            all_day_b,
            EVENING,
            all_day_a,
        ]


class TestPickReferee:
    def test_first_match_wins(self):
        assert pick_referee([EVENING, MORNING], TOMORROW, "09:00", "11:00") is MORNING
        assert pick_referee([MORNING, EVENING, make_staff("Late")], TOMORROW, "18:00", "20:00") is EVENING

    def test_no_match(self):
        assert pick_referee([MORNING], TOMORROW, "13:00", "15:00") is None


_hours = st.integers(min_value=0, max_value=23)


@given(
    windows=st.lists(st.tuples(st.integers(0, 6), _hours, _hours), max_size=4),
    start=_hours,
    length=st.integers(min_value=1, max_value=6),
)
def test_matches_always_contain_the_range(windows, start, length):
    end = min(start + length, 23)
    if end <= start:
        return
    start_time, end_time = f"{start:02d}:00", f"{end:02d}:59"
    member = make_staff(
        "Prop",
        windows=[(d, f"{a:02d}:00", f"{b:02d}:59") for d, a, b in windows if b >= a],
    )

    weekday = day_of_week(TOMORROW)
    for match in get_available_referees([member], TOMORROW, start_time, end_time):
        assert any(
            w.is_available and w.day_of_week == weekday and w.start_time <= start_time and w.end_time >= end_time
            for w in match.availability
        )

"""Tests for the pricing calculator."""

from stadium_booking.models import DiscountRequest
from stadium_booking.services import pricing
from tests.mocks.models import MOCK_FIELD, MOCK_REFEREE


def _pct(value: float) -> DiscountRequest:
    return DiscountRequest(type="percentage", value=value)


def _fixed(value: float) -> DiscountRequest:
    return DiscountRequest(type="fixed", value=value)


class TestBase:
    def test_rate_times_hours(self):
        base = pricing.compute_base(MOCK_FIELD, "10:00", "12:00")
        assert base.base_rate == 10000
        assert base.duration_hours == 2
        assert base.total_amount == 20000
        assert base.currency == "LAK"

    def test_half_hour_durations(self):
        assert pricing.compute_base(MOCK_FIELD, "10:00", "11:30").total_amount == 15000

    def test_quote_shape(self):
        quote = pricing.quote(MOCK_FIELD, "10:00", "12:00")
        assert quote.model_dump(by_alias=True) == {
            "rate": 10000,
            "duration": 2,
            "total": 20000,
            "currency": "LAK",
        }


class TestRefereeCharges:
    def test_referee_line(self):
        charge = pricing.referee_charge(MOCK_REFEREE, "10:00", "12:00")
        assert charge.staff_id == MOCK_REFEREE.id
        assert charge.hours == 2
        assert charge.rate == 5000
        assert charge.total == 10000

    def test_worked_example(self):
        snapshot = pricing.build_pricing(MOCK_FIELD, "10:00", "12:00", [MOCK_REFEREE])
        assert snapshot.base_amount == 20000
        assert snapshot.total_referee_charges == 10000
        assert snapshot.total_amount == 30000

    def test_without_referee(self):
        snapshot = pricing.build_pricing(MOCK_FIELD, "10:00", "12:00")
        assert snapshot.referee_charges == []
        assert snapshot.total_amount == 20000


class TestDiscounts:
    def test_percentages_apply_to_running_total(self):
        total, applied = pricing.apply_discounts(100, [_pct(10), _pct(10)])
        assert total == 81
        assert [d.amount for d in applied] == [10, 9]

    def test_fixed_then_percentage(self):
        total, applied = pricing.apply_discounts(100, [_fixed(20), _pct(50)])
        assert total == 40
        assert [d.amount for d in applied] == [20, 40]

    def test_oversized_discount_is_clamped(self):
        total, applied = pricing.apply_discounts(50, [_fixed(80), _fixed(10)])
        assert total == 0
        assert [d.amount for d in applied] == [50, 0]

    def test_percentage_over_hundred_is_clamped(self):
        total, _ = pricing.apply_discounts(100, [_pct(150)])
        assert total == 0

    def test_discounts_in_snapshot(self):
        snapshot = pricing.build_pricing(MOCK_FIELD, "10:00", "12:00", [MOCK_REFEREE], [_pct(10)])
        assert snapshot.total_amount == 27000
        assert snapshot.discounts[0].amount == 3000

    def test_add_discount_to_existing_snapshot(self):
        snapshot = pricing.build_pricing(MOCK_FIELD, "10:00", "12:00", [MOCK_REFEREE], [_pct(10)])
        updated = pricing.add_discount(snapshot, _fixed(2000))
        assert updated.total_amount == 25000
        assert [d.amount for d in updated.discounts] == [3000, 2000]
        # original untouched
        assert snapshot.total_amount == 27000

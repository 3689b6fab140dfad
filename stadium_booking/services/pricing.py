"""
Duration-based pricing.

Amounts are rounded to two decimals at each line so the snapshot stored on
a reservation adds up exactly.
"""

from __future__ import annotations

from collections.abc import Iterable

from stadium_booking.models import (
    BasePricing,
    Discount,
    DiscountRequest,
    Pricing,
    RefereeCharge,
    SlotQuote,
    SportsField,
    StaffMember,
)
from stadium_booking.services.timeutil import duration_hours


def _money(value: float) -> float:
    return round(value, 2)


def compute_base(field: SportsField, start_time: str, end_time: str) -> BasePricing:
    hours = duration_hours(start_time, end_time)
    return BasePricing(
        base_rate=field.base_hourly_rate,
        duration_hours=hours,
        total_amount=_money(field.base_hourly_rate * hours),
        currency=field.currency,
    )


def referee_charge(referee: StaffMember, start_time: str, end_time: str) -> RefereeCharge:
    hours = duration_hours(start_time, end_time)
    return RefereeCharge(
        staff_id=referee.id,
        referee_name=referee.name,
        hours=hours,
        rate=referee.hourly_rate,
        total=_money(referee.hourly_rate * hours),
    )


def apply_discounts(total: float, requests: Iterable[DiscountRequest]) -> tuple[float, list[Discount]]:
    """
    Apply discounts in order, each against the running total.

    A percentage takes that share of what is left; a fixed amount larger
    than what is left is clamped, so the total never goes negative.
    Returns the new total and the discounts as actually applied.
    """
    applied: list[Discount] = []
    for request in requests:
        if request.type == "percentage":
            amount = total * min(request.value, 100) / 100
        else:
            amount = request.value
        amount = _money(min(amount, total))
        total = _money(total - amount)
        applied.append(Discount(type=request.type, amount=amount, description=request.description))
    return total, applied


def build_pricing(
    field: SportsField,
    start_time: str,
    end_time: str,
    referees: Iterable[StaffMember] = (),
    discounts: Iterable[DiscountRequest] = (),
) -> Pricing:
    """Assemble the pricing snapshot for a new reservation."""
    base = compute_base(field, start_time, end_time)
    charges = [referee_charge(r, start_time, end_time) for r in referees]
    referee_total = _money(sum(c.total for c in charges))
    total, applied = apply_discounts(_money(base.total_amount + referee_total), discounts)
    return Pricing(
        base_rate=base.base_rate,
        duration_hours=base.duration_hours,
        base_amount=base.total_amount,
        referee_charges=charges,
        total_referee_charges=referee_total,
        discounts=applied,
        total_amount=total,
        currency=base.currency,
    )


def add_discount(pricing: Pricing, request: DiscountRequest) -> Pricing:
    """Apply one more discount to an existing snapshot."""
    total, applied = apply_discounts(pricing.total_amount, [request])
    return pricing.model_copy(
        update={"discounts": [*pricing.discounts, *applied], "total_amount": total}
    )


def quote(field: SportsField, start_time: str, end_time: str) -> SlotQuote:
    base = compute_base(field, start_time, end_time)
    return SlotQuote(
        rate=base.base_rate,
        duration=base.duration_hours,
        total=base.total_amount,
        currency=base.currency,
    )

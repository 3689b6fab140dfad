"""
Tiered cancellation and refund policy.

Hours until start are measured in the stadium's local time.  Refunds only
apply to paid reservations:

    ≥ 48h   full refund
    24–48h  half refund
    < 24h   nothing (and customers cannot cancel at all)

Privileged roles skip the 24-hour lockout but not the refund tiers.
"""

from __future__ import annotations

from datetime import datetime

from stadium_booking.config import (
    FULL_REFUND_HOURS,
    PARTIAL_REFUND_HOURS,
    PARTIAL_REFUND_RATIO,
    PRIVILEGED_ROLES,
)
from stadium_booking.models import CancellationDecision, Reservation
from stadium_booking.services.timeutil import hours_until

_FINAL_STATUSES = ("cancelled", "completed")


def refund_ratio(hours: float) -> float:
    if hours >= FULL_REFUND_HOURS:
        return 1.0
    if hours >= PARTIAL_REFUND_HOURS:
        return PARTIAL_REFUND_RATIO
    return 0.0


class CancellationPolicy:
    def __init__(self, privileged_roles: frozenset[str] = PRIVILEGED_ROLES) -> None:
        self._privileged = privileged_roles

    def evaluate(self, reservation: Reservation, now: datetime, actor_role: str) -> CancellationDecision:
        hours = hours_until(reservation.booking_date, reservation.start_time, now)

        if reservation.status in _FINAL_STATUSES:
            return CancellationDecision(
                allowed=False,
                hours_until_start=hours,
                refund_percentage=0,
                refund_amount=0,
                refund_status="not_applicable",
                reason=f"Booking is already {reservation.status}",
            )

        if hours < PARTIAL_REFUND_HOURS and actor_role not in self._privileged:
            return CancellationDecision(
                allowed=False,
                hours_until_start=hours,
                refund_percentage=0,
                refund_amount=0,
                refund_status="not_applicable",
                reason=f"Cannot cancel booking less than {PARTIAL_REFUND_HOURS:g} hours before start time",
            )

        ratio = refund_ratio(hours) if reservation.payment_status == "paid" else 0.0
        amount = round(reservation.pricing.total_amount * ratio, 2)
        return CancellationDecision(
            allowed=True,
            hours_until_start=hours,
            refund_percentage=ratio * 100,
            refund_amount=amount,
            refund_status="pending" if amount > 0 else "not_applicable",
        )

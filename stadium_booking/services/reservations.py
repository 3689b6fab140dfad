"""Construction helpers shared by single bookings and membership series."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import uuid4

from stadium_booking.models import (
    AssignedStaff,
    HistoryEntry,
    MembershipDetails,
    Pricing,
    Reservation,
    SportsField,
    StaffMember,
    TeamInfo,
)
from stadium_booking.services.timeutil import duration_hours


def new_booking_number(now: datetime) -> str:
    """``BK`` + yymmdd + random suffix, e.g. ``BK261018A41F9C``."""
    return f"BK{now:%y%m%d}{uuid4().hex[:6].upper()}"


def history_entry(
    action: str,
    changed_by: str,
    now: datetime,
    *,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    notes: str | None = None,
) -> HistoryEntry:
    return HistoryEntry(
        action=action,
        changed_by=changed_by,
        old_values=old_values,
        new_values=new_values,
        notes=notes,
        timestamp=now,
    )


def assign(referee: StaffMember, now: datetime) -> AssignedStaff:
    return AssignedStaff(
        staff_id=referee.id,
        staff_name=referee.name,
        role=referee.role,
        assigned_at=now,
    )


def new_reservation(
    *,
    field: SportsField,
    user_id: str,
    booking_date: date,
    start_time: str,
    end_time: str,
    pricing: Pricing,
    now: datetime,
    status: str = "pending",
    booking_type: str = "regular",
    team_info: TeamInfo | None = None,
    special_requests: list[str] | None = None,
    notes: str | None = None,
    assigned_staff: list[AssignedStaff] | None = None,
    membership_details: MembershipDetails | None = None,
) -> Reservation:
    """A fresh reservation with its ``created`` history entry."""
    return Reservation(
        id=uuid4(),
        booking_number=new_booking_number(now),
        user_id=user_id,
        stadium_id=field.stadium_id,
        field_id=field.id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        duration_hours=duration_hours(start_time, end_time),
        status=status,
        payment_status="pending",
        booking_type=booking_type,
        pricing=pricing,
        team_info=team_info,
        special_requests=special_requests or [],
        notes=notes,
        assigned_staff=assigned_staff or [],
        membership_details=membership_details,
        history=[
            history_entry(
                "created",
                user_id,
                now,
                new_values={"status": status, "bookingType": booking_type},
            )
        ],
        created_at=now,
        updated_at=now,
    )


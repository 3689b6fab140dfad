"""Pydantic models for the Stadium Booking API."""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from stadium_booking.config import DEFAULT_CURRENCY, PRIVILEGED_ROLES

TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"

ReservationStatus = Literal["pending", "confirmed", "cancelled", "completed", "no_show"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
BookingType = Literal["regular", "membership", "tournament", "training", "event"]
RecurrencePattern = Literal["weekly", "biweekly", "monthly"]
FieldStatus = Literal["active", "inactive", "maintenance"]
StaffRole = Literal["manager", "referee", "maintenance", "security"]
StaffStatus = Literal["active", "inactive", "suspended"]
SlotStatus = Literal["available", "schedule_unavailable", "booked"]
RefundStatus = Literal["pending", "not_applicable"]
HistoryAction = Literal["created", "updated", "confirmed", "cancelled", "completed"]

# Reservations in these states occupy their slot.
ACTIVE_STATUSES: tuple[str, ...] = ("pending", "confirmed")


class ApiModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
#                    SCHEDULES & FIELDS
# ══════════════════════════════════════════════════════════════════════════


class TimeSlot(ApiModel):
    """One bookable block in a field's schedule."""
    start_time: str = Field(..., pattern=TIME_PATTERN, description="Start time (HH:mm)")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="End time (HH:mm)")
    is_available: bool = Field(default=True, description="Whether the block can be booked at all")
    special_rate: float | None = Field(None, ge=0, description="Hourly rate overriding the field's base rate")

    @model_validator(mode="after")
    def _check_order(self) -> TimeSlot:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class DaySchedule(ApiModel):
    """Weekly template for one day of the week."""
    day_of_week: int = Field(..., ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")
    time_slots: list[TimeSlot] = Field(default_factory=list)


class SpecialDate(ApiModel):
    """Override that replaces the weekly template on a single calendar date."""
    id: UUID = Field(..., description="Stable override identifier")
    date: dt.date = Field(..., description="Calendar date the override applies to")
    reason: str | None = Field(None, description="Why the day differs (holiday, tournament…)")
    time_slots: list[TimeSlot] = Field(default_factory=list)


class Stadium(ApiModel):
    id: UUID
    owner_id: str = Field(..., description="User id of the stadium owner")
    name: str
    status: FieldStatus = "active"


class SportsField(ApiModel):
    """A bookable playing surface belonging to a stadium."""
    id: UUID = Field(..., description="Unique field identifier")
    stadium_id: UUID = Field(..., description="Owning stadium")
    name: str = Field(..., description="Field name")
    status: FieldStatus = Field(default="active", description="Only active fields accept bookings")
    base_hourly_rate: float = Field(..., ge=0, description="Default hourly rate")
    currency: str = Field(default=DEFAULT_CURRENCY, description="Currency code")
    availability_schedule: list[DaySchedule] = Field(default_factory=list)
    special_dates: list[SpecialDate] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
#                    STAFF
# ══════════════════════════════════════════════════════════════════════════


class AvailabilityWindow(ApiModel):
    day_of_week: int = Field(..., ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    is_available: bool = True


class StaffMember(ApiModel):
    id: UUID = Field(..., description="Stable staff identifier")
    stadium_id: UUID
    name: str
    role: StaffRole
    status: StaffStatus = "active"
    hourly_rate: float = Field(default=0, ge=0)
    currency: str = DEFAULT_CURRENCY
    availability: list[AvailabilityWindow] = Field(default_factory=list)


class RefereeOption(ApiModel):
    """Referee that could officiate a requested time range."""
    id: UUID
    name: str
    rate: float
    currency: str


# ══════════════════════════════════════════════════════════════════════════
#                    PRICING
# ══════════════════════════════════════════════════════════════════════════


class RefereeCharge(ApiModel):
    staff_id: UUID
    referee_name: str
    hours: float
    rate: float
    total: float


class Discount(ApiModel):
    """A discount as applied: ``amount`` is the money actually taken off."""
    type: Literal["percentage", "fixed"]
    amount: float
    description: str | None = None


class DiscountRequest(ApiModel):
    """A discount to apply: ``value`` is a percent or a fixed amount."""
    type: Literal["percentage", "fixed"]
    value: float = Field(..., ge=0)
    description: str | None = None


class BasePricing(ApiModel):
    base_rate: float
    duration_hours: float
    total_amount: float
    currency: str


class Pricing(ApiModel):
    """Pricing snapshot stored on a reservation."""
    base_rate: float
    duration_hours: float
    base_amount: float
    referee_charges: list[RefereeCharge] = Field(default_factory=list)
    total_referee_charges: float = 0
    discounts: list[Discount] = Field(default_factory=list)
    total_amount: float
    currency: str = DEFAULT_CURRENCY


class SlotQuote(ApiModel):
    """Price preview returned alongside a slot check."""
    rate: float
    duration: float
    total: float
    currency: str


# ══════════════════════════════════════════════════════════════════════════
#                    RESERVATIONS
# ══════════════════════════════════════════════════════════════════════════


class TeamInfo(ApiModel):
    team_name: str | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    number_of_players: int | None = Field(None, ge=1)
    experience: Literal["beginner", "intermediate", "advanced"] | None = None


class AssignedStaff(ApiModel):
    staff_id: UUID
    staff_name: str
    role: str
    assigned_at: dt.datetime
    status: Literal["assigned", "confirmed", "completed", "cancelled"] = "assigned"


class Payment(ApiModel):
    id: UUID
    payment_method: Literal["credit_card", "qrcode", "bank_transfer", "digital_wallet", "cash"]
    amount: float
    currency: str
    status: Literal["pending", "completed", "failed", "cancelled", "refunded"] = "completed"
    transaction_id: str | None = None
    processed_at: dt.datetime | None = None


class PaymentRequest(ApiModel):
    payment_method: Literal["credit_card", "qrcode", "bank_transfer", "digital_wallet", "cash"]
    amount: float = Field(..., gt=0)
    transaction_id: str | None = None


class HistoryEntry(ApiModel):
    action: HistoryAction
    changed_by: str
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    notes: str | None = None
    timestamp: dt.datetime


class CancellationRecord(ApiModel):
    cancelled_at: dt.datetime
    cancelled_by: str
    reason: str
    refund_amount: float
    refund_status: RefundStatus


class MembershipDetails(ApiModel):
    series_id: UUID = Field(..., description="Key shared by every occurrence of one series")
    membership_start_date: dt.date
    membership_end_date: dt.date | None = None
    recurrence_pattern: RecurrencePattern
    recurrence_day_of_week: int = Field(..., ge=0, le=6)
    next_booking_date: dt.date
    total_occurrences: int | None = Field(None, ge=1)
    completed_occurrences: int = Field(..., ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_counts(self) -> MembershipDetails:
        if self.total_occurrences is not None and self.completed_occurrences > self.total_occurrences:
            raise ValueError("completed_occurrences cannot exceed total_occurrences")
        return self


class Reservation(ApiModel):
    id: UUID = Field(..., description="Unique reservation identifier")
    booking_number: str = Field(..., description="Human-readable booking reference")
    user_id: str
    stadium_id: UUID
    field_id: UUID
    booking_date: dt.date
    start_time: str
    end_time: str
    duration_hours: float
    status: ReservationStatus = "pending"
    payment_status: PaymentStatus = "pending"
    booking_type: BookingType = "regular"
    pricing: Pricing
    team_info: TeamInfo | None = None
    special_requests: list[str] = Field(default_factory=list)
    notes: str | None = None
    assigned_staff: list[AssignedStaff] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    membership_details: MembershipDetails | None = None
    cancellation: CancellationRecord | None = None
    history: list[HistoryEntry] = Field(default_factory=list)
    version: int = Field(0, ge=0, description="Write counter; bumped on every stored change")
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


# ══════════════════════════════════════════════════════════════════════════
#                    REQUESTS
# ══════════════════════════════════════════════════════════════════════════


class BookingRequest(ApiModel):
    field_id: UUID
    booking_date: dt.date
    start_time: str = Field(..., description="Start time (HH:mm)")
    end_time: str = Field(..., description="End time (HH:mm)")
    needs_referee: bool | None = Field(None, description="Defaults to AUTO_ASSIGN_REFEREE")
    booking_type: Literal["regular", "tournament", "training", "event"] = "regular"
    team_info: TeamInfo | None = None
    special_requests: list[str] = Field(default_factory=list)
    notes: str | None = None


class MembershipRequest(ApiModel):
    field_id: UUID
    start_date: dt.date
    end_date: dt.date | None = None
    day_of_week: int = Field(..., ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")
    start_time: str
    end_time: str
    recurrence_pattern: RecurrencePattern = "weekly"
    total_occurrences: int | None = Field(None, ge=1)
    team_info: TeamInfo | None = None
    special_requests: list[str] = Field(default_factory=list)


class CancelRequest(ApiModel):
    reason: str | None = None


class RescheduleRequest(ApiModel):
    booking_date: dt.date
    start_time: str
    end_time: str


class StaffAssignmentRequest(ApiModel):
    staff_ids: list[UUID] = Field(..., min_length=1, description="Staff members to put on the booking")


class BookingFilters(ApiModel):
    """Optional filters for booking listings; unset fields match everything."""
    user_id: str | None = None
    stadium_id: UUID | None = None
    field_id: UUID | None = None
    status: ReservationStatus | None = None
    date_from: dt.date | None = None
    date_to: dt.date | None = None


# ══════════════════════════════════════════════════════════════════════════
#                    RESULTS
# ══════════════════════════════════════════════════════════════════════════


class SlotCheck(ApiModel):
    is_available: bool
    reason: str | None = Field(None, description="Why the slot cannot be booked")
    message: str = ""
    pricing: SlotQuote | None = None


class SlotEntry(ApiModel):
    start_time: str
    end_time: str
    rate: float
    currency: str
    status: SlotStatus
    reason: str | None = None
    booking_status: str | None = None


class AvailabilitySummary(ApiModel):
    total_slots: int
    available_count: int
    unavailable_count: int


class DayAvailability(ApiModel):
    field_id: UUID
    date: dt.date
    day_of_week: int
    source: Literal["template", "override", "closed"]
    available_slots: list[SlotEntry] = Field(default_factory=list)
    unavailable_slots: list[SlotEntry] = Field(default_factory=list)
    summary: AvailabilitySummary
    message: str | None = None


class OccurrenceCreated(ApiModel):
    kind: Literal["created"] = "created"
    booking_date: dt.date
    reservation: Reservation


class OccurrenceSkipped(ApiModel):
    kind: Literal["skipped"] = "skipped"
    booking_date: dt.date
    reason: str
    conflicting_booking_id: UUID | None = None


OccurrenceOutcome = Annotated[
    OccurrenceCreated | OccurrenceSkipped, Field(discriminator="kind")
]


class MembershipSeriesResult(ApiModel):
    series_id: UUID
    outcomes: list[OccurrenceOutcome] = Field(default_factory=list)

    @property
    def created(self) -> list[Reservation]:
        return [o.reservation for o in self.outcomes if isinstance(o, OccurrenceCreated)]

    @property
    def skipped(self) -> list[OccurrenceSkipped]:
        return [o for o in self.outcomes if isinstance(o, OccurrenceSkipped)]

    @computed_field(alias="createdCount")  # type: ignore[prop-decorator]
    @property
    def created_count(self) -> int:
        return len(self.created)

    @computed_field(alias="skippedCount")  # type: ignore[prop-decorator]
    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


class SeriesCancellation(ApiModel):
    series_id: UUID
    cancelled_count: int
    cancelled_ids: list[UUID] = Field(default_factory=list)


class CancellationDecision(ApiModel):
    allowed: bool
    hours_until_start: float
    refund_percentage: float
    refund_amount: float
    refund_status: RefundStatus
    reason: str | None = None


class CancellationResult(ApiModel):
    reservation: Reservation
    refund_amount: float


class BookingPayments(ApiModel):
    booking_id: UUID
    payments: list[Payment]
    total_paid: float = Field(..., description="Sum of completed payments")
    total_amount: float
    currency: str


# ══════════════════════════════════════════════════════════════════════════
#                    API PLUMBING
# ══════════════════════════════════════════════════════════════════════════


class Actor(ApiModel):
    """The authenticated caller of an engine operation."""
    id: str
    role: str = "customer"

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class PaginationMeta(ApiModel):
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=1)


class ReservationList(ApiModel):
    items: list[Reservation]
    meta: PaginationMeta


class Error(ApiModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")


class HealthResponse(ApiModel):
    status: str
    version: str
    timestamp: dt.datetime

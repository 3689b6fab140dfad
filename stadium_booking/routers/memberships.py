"""
Membership endpoints – recurring booking series.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from stadium_booking.dependencies import CurrentActor, Engine, PaginationParams, paginate
from stadium_booking.models import (
    MembershipRequest,
    MembershipSeriesResult,
    ReservationList,
    SeriesCancellation,
)
from stadium_booking.rate_limit import DEFAULT, WRITE, limiter

router = APIRouter(prefix="/api/memberships", tags=["memberships"])


@router.post(
    "",
    response_model=MembershipSeriesResult,
    status_code=status.HTTP_201_CREATED,
    operation_id="createMembershipSeries",
    summary="Create a recurring booking series",
)
@limiter.limit(WRITE)
async def create_membership_series(
    request: Request, body: MembershipRequest, actor: CurrentActor, engine: Engine
) -> MembershipSeriesResult:
    """
    Book every candidate date of the series that is still free.

    Dates that are already taken are reported as skipped; the call only
    fails when the field is missing or closed, or the start is in the past.
    """
    return await engine.create_membership_series(body, actor)


@router.get(
    "",
    response_model=ReservationList,
    operation_id="listMemberships",
    summary="List the caller's membership bookings",
)
@limiter.limit(DEFAULT)
async def list_memberships(
    request: Request,
    actor: CurrentActor,
    engine: Engine,
    pagination: PaginationParams = Depends(PaginationParams),
) -> ReservationList:
    items = await engine.list_user_memberships(actor.id)
    return paginate(items, pagination, ReservationList)


@router.post(
    "/{booking_id}/cancel",
    response_model=SeriesCancellation,
    operation_id="cancelMembershipSeries",
    summary="Cancel all upcoming occurrences of a membership series",
)
@limiter.limit(WRITE)
async def cancel_membership_series(
    request: Request, booking_id: UUID, actor: CurrentActor, engine: Engine
) -> SeriesCancellation:
    return await engine.cancel_membership_series(booking_id, actor)

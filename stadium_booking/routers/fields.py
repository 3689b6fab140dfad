"""
Field availability endpoints – slot checks, day breakdowns, referees.
"""

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Query, Request

from stadium_booking.dependencies import Engine
from stadium_booking.models import TIME_PATTERN, DayAvailability, RefereeOption, SlotCheck
from stadium_booking.rate_limit import DEFAULT, limiter

router = APIRouter(prefix="/api/fields/{field_id}", tags=["fields"])


@router.get(
    "/check-slot",
    response_model=SlotCheck,
    operation_id="checkSlot",
    summary="Check whether a time range on a field can be booked",
)
@limiter.limit(DEFAULT)
async def check_slot(
    request: Request,
    field_id: UUID,
    engine: Engine,
    date: dt.date = Query(..., description="Booking date (YYYY-MM-DD)"),
    start_time: str = Query(..., pattern=TIME_PATTERN, description="Start time (HH:mm)"),
    end_time: str = Query(..., pattern=TIME_PATTERN, description="End time (HH:mm)"),
) -> SlotCheck:
    return await engine.check_slot(field_id, date, start_time, end_time)


@router.get(
    "/availability",
    response_model=DayAvailability,
    operation_id="getAvailability",
    summary="Available and unavailable slots for one day",
)
@limiter.limit(DEFAULT)
async def get_availability(
    request: Request,
    field_id: UUID,
    engine: Engine,
    date: dt.date = Query(..., description="Date to check (YYYY-MM-DD)"),
) -> DayAvailability:
    return await engine.get_availability(field_id, date)


@router.get(
    "/referees",
    response_model=list[RefereeOption],
    operation_id="listAvailableReferees",
    summary="Referees free for the whole requested range",
)
@limiter.limit(DEFAULT)
async def list_available_referees(
    request: Request,
    field_id: UUID,
    engine: Engine,
    date: dt.date = Query(..., description="Booking date (YYYY-MM-DD)"),
    start_time: str = Query(..., pattern=TIME_PATTERN),
    end_time: str = Query(..., pattern=TIME_PATTERN),
) -> list[RefereeOption]:
    return await engine.get_available_referees(field_id, date, start_time, end_time)

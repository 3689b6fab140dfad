"""Main FastAPI application for the Stadium Booking API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from stadium_booking import db
from stadium_booking.config import VERSION
from stadium_booking.errors import BookingError
from stadium_booking.models import Error
from stadium_booking.rate_limit import limiter
from stadium_booking.routers import bookings, fields, health, memberships

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await db.init_db()
    try:
        yield
    finally:
        await db.close_db()


app = FastAPI(
    title="Stadium Booking API",
    description="Field availability, bookings, referee matching and membership series",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.error, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=Error(error=exc.error, message=exc.message, details=exc.details).model_dump(),
    )


app.include_router(health.router)
app.include_router(fields.router)
app.include_router(bookings.router)
app.include_router(memberships.router)

"""
Engine registry – holds the storage collaborators and the booking engine.

Provides a single place for routers to reach the engine.  Tests swap the
collaborators for in-memory doubles by building their own registry.
"""

from __future__ import annotations

from stadium_booking.services.booking import BookingEngine
from stadium_booking.services.repository import ReservationRepository, ScheduleCatalog, StaffDirectory
from stadium_booking.services.store import (
    SqliteReservationRepository,
    SqliteScheduleCatalog,
    SqliteStaffDirectory,
)
from stadium_booking.services.timeutil import Clock, local_now


class EngineRegistry:
    """
    Wires a BookingEngine to its catalog, staff directory and reservation
    store.  Defaults to the SQLite implementations.
    """

    def __init__(
        self,
        catalog: ScheduleCatalog | None = None,
        staff: StaffDirectory | None = None,
        reservations: ReservationRepository | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.catalog = catalog or SqliteScheduleCatalog()
        self.staff = staff or SqliteStaffDirectory()
        self.reservations = reservations or SqliteReservationRepository()
        self.engine = BookingEngine(self.catalog, self.staff, self.reservations, clock=clock)

    def get_engine(self) -> BookingEngine:
        return self.engine


# ── Singleton instance ────────────────────────────────────────────────────
registry = EngineRegistry()

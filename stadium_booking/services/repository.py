"""
Abstract interfaces for the engine's storage collaborators.

The engine only talks to these protocols, so the SQLite store in
``stadium_booking.services.store`` and the in-memory doubles used by the
tests are interchangeable.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from stadium_booking.models import BookingFilters, HistoryEntry, Reservation, SportsField, Stadium, StaffMember


class ScheduleCatalog(Protocol):
    """Read-only lookup of stadiums, fields and their schedules."""

    async def get_stadium(self, stadium_id: UUID) -> Stadium | None:
        """Return the stadium; its ``owner_id`` scopes stadium-owner privileges."""
        ...

    async def get_field(self, field_id: UUID) -> SportsField | None:
        """Return the field with its weekly template and date overrides."""
        ...


class StaffDirectory(Protocol):
    """Staff members addressable by ``(stadium_id, staff_id)``."""

    async def list_staff(self, stadium_id: UUID) -> list[StaffMember]:
        """Return the stadium's staff in directory order."""
        ...

    async def get_staff(self, stadium_id: UUID, staff_id: UUID) -> StaffMember | None:
        ...


class ReservationRepository(Protocol):
    """Reservation storage.  Inserts and updates are the overlap authority."""

    async def get(self, reservation_id: UUID) -> Reservation | None:
        ...

    async def find(
        self,
        field_id: UUID,
        booking_date: date,
        statuses: Iterable[str],
    ) -> list[Reservation]:
        """Reservations on a field and date whose status is in *statuses*."""
        ...

    async def insert(self, reservation: Reservation) -> Reservation:
        """
        Persist a new reservation.

        Raises SlotConflict if an active reservation on the same field and
        date overlaps it at the moment of the write.
        """
        ...

    async def update(self, reservation: Reservation, *, expected_status: str) -> Reservation:
        """
        Persist changes to an existing reservation.

        The write only happens while the stored status still equals
        *expected_status* (InvalidTransition otherwise) and the stored
        version still equals ``reservation.version`` (StaleReservation
        otherwise).  The stored version is bumped and the returned copy
        carries it.  An active reservation is re-checked for overlap
        against everything but itself (SlotConflict).  New history entries
        are appended.
        """
        ...

    async def cancel_series(
        self,
        series_id: UUID,
        *,
        from_date: date,
        entry: HistoryEntry,
        cancelled_at: datetime,
    ) -> list[UUID]:
        """
        Cancel every active occurrence of a series dated on/after *from_date*.

        One conditional bulk write; returns the ids that were cancelled.
        """
        ...

    async def list_for_user(
        self, user_id: str, *, booking_type: str | None = None
    ) -> list[Reservation]:
        """A user's reservations ordered by date and start time."""
        ...

    async def search(self, filters: BookingFilters) -> list[Reservation]:
        """Reservations matching *filters*, newest booking date first."""
        ...

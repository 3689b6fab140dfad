"""Who may act on a stadium's bookings."""

from __future__ import annotations

from uuid import UUID

from stadium_booking.config import STADIUM_OWNER_ROLE
from stadium_booking.models import Actor
from stadium_booking.services.repository import ScheduleCatalog


async def is_stadium_staff(catalog: ScheduleCatalog, actor: Actor, stadium_id: UUID) -> bool:
    """
    Whether *actor* has staff rights on the stadium.

    Privileged roles cover every stadium, except stadium owners, who only
    cover the stadiums they own.
    """
    if not actor.is_privileged:
        return False
    if actor.role != STADIUM_OWNER_ROLE:
        return True
    stadium = await catalog.get_stadium(stadium_id)
    return stadium is not None and stadium.owner_id == actor.id

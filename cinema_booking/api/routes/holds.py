"""
Seat hold endpoints. Holding seats is the first step of every purchase.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.db.session import get_db
from cinema_booking.schemas.hold import HoldCreate, HoldResponse, HoldReleaseResponse
from cinema_booking.services import seat_inventory
from cinema_booking.services.interfaces.identity import Actor
from cinema_booking.core.errors import Unauthorized
from cinema_booking.core.security import get_current_actor

router = APIRouter(prefix="/holds", tags=["Seat holds"])


@router.post("", response_model=HoldResponse, status_code=status.HTTP_201_CREATED)
async def create_hold(
    hold_data: HoldCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Hold seats of a showtime for a limited time.

    All requested seats are held or none are. On conflict the response is a
    409 listing `conflicting_seats` so the client can pick other seats.
    """
    return await seat_inventory.attempt_hold(
        db,
        showtime_id=hold_data.showtime_id,
        seat_ids=hold_data.seat_ids,
        user_id=actor.user_id,
        ttl_seconds=hold_data.ttl_seconds,
    )


@router.delete("/{holder_token}", response_model=HoldReleaseResponse)
async def release_hold_endpoint(
    holder_token: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Give held seats back. Releasing an unknown or finished hold is a no-op."""
    hold = await seat_inventory.get_hold(db, holder_token)
    if hold is not None and not actor.can_access(hold.user_id):
        raise Unauthorized("This seat hold belongs to another user")

    released = await seat_inventory.release_hold(db, holder_token)
    return HoldReleaseResponse(holder_token=holder_token, seats_released=released)

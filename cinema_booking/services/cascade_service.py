"""
Cascade deletion of catalog entities.

Deleting a movie, hall or showtime removes everything that hangs off it:

    payments -> bookings -> seat holds -> showtime seats -> showtimes -> hall/movie

All of it happens in one transaction while every affected showtime is locked
(in-process lock and row lock, taken in id order), so no hold, checkout or
cancellation can touch those showtimes halfway through. Either every row is
gone or none is.
"""

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.errors import CascadeConflict, CatalogNotFound
from cinema_booking.core.logging import get_logger
from cinema_booking.core.metrics import record_cascade
from cinema_booking.models.booking import Booking
from cinema_booking.models.hall import Hall
from cinema_booking.models.movie import Movie
from cinema_booking.models.payment import Payment
from cinema_booking.models.seat import SeatHold, ShowtimeSeat
from cinema_booking.models.showtime import Showtime
from cinema_booking.services import seat_inventory
from cinema_booking.services.cache_service import invalidate_showtime_cache
from cinema_booking.services.seat_inventory import showtime_locks

logger = get_logger(__name__)

ENTITY_MODELS = {
    "movie": Movie,
    "hall": Hall,
    "showtime": Showtime,
}


async def _affected_showtime_ids(db: AsyncSession, entity_type: str, entity_id: int) -> list[int]:
    if entity_type == "showtime":
        return [entity_id]
    column = Showtime.movie_id if entity_type == "movie" else Showtime.hall_id
    result = await db.execute(select(Showtime.id).where(column == entity_id).order_by(Showtime.id))
    return list(result.scalars())


async def delete_entity(db: AsyncSession, entity_type: str, entity_id: int) -> dict:
    """
    Delete a catalog entity and everything that depends on it.

    Raises:
        CatalogNotFound: the entity does not exist
        CascadeConflict: the delete failed; nothing was removed
    """
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise CatalogNotFound(entity_type, entity_id)
    if await db.scalar(select(model.id).where(model.id == entity_id)) is None:
        raise CatalogNotFound(entity_type, entity_id)

    showtime_ids = await _affected_showtime_ids(db, entity_type, entity_id)
    counts = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "showtimes_deleted": 0,
        "bookings_deleted": 0,
        "payments_deleted": 0,
        "seats_deleted": 0,
        "holds_deleted": 0,
    }

    async with showtime_locks.acquire(*showtime_ids):
        try:
            locked = [
                await seat_inventory.lock_showtime(db, showtime_id) for showtime_id in sorted(showtime_ids)
            ]

            # A showtime scheduled or removed since the scan would escape the locks
            current_ids = await _affected_showtime_ids(db, entity_type, entity_id)
            if any(showtime is None for showtime in locked) or current_ids != sorted(showtime_ids):
                raise CascadeConflict(entity_type, entity_id, "showtimes changed during delete")

            movie_ids = {showtime.movie_id for showtime in locked}
            if entity_type == "movie":
                movie_ids.add(entity_id)

            booking_ids = list(
                (await db.execute(select(Booking.id).where(Booking.showtime_id.in_(showtime_ids)))).scalars()
            )

            if booking_ids:
                counts["payments_deleted"] = await _rowcount(
                    db, delete(Payment).where(Payment.booking_id.in_(booking_ids))
                )
                await _rowcount(
                    db,
                    update(ShowtimeSeat)
                    .where(ShowtimeSeat.booking_id.in_(booking_ids))
                    .values(booking_id=None),
                )
                counts["bookings_deleted"] = await _rowcount(
                    db, delete(Booking).where(Booking.id.in_(booking_ids))
                )
            if showtime_ids:
                counts["holds_deleted"] = await _rowcount(
                    db, delete(SeatHold).where(SeatHold.showtime_id.in_(showtime_ids))
                )
                counts["seats_deleted"] = await _rowcount(
                    db, delete(ShowtimeSeat).where(ShowtimeSeat.showtime_id.in_(showtime_ids))
                )
                counts["showtimes_deleted"] = await _rowcount(
                    db, delete(Showtime).where(Showtime.id.in_(showtime_ids))
                )
            if model is not Showtime:
                await _rowcount(db, delete(model).where(model.id == entity_id))

            await db.commit()
        except CascadeConflict:
            await db.rollback()
            record_cascade(entity_type, ok=False)
            raise
        except Exception as e:
            await db.rollback()
            record_cascade(entity_type, ok=False)
            logger.error("cascade_failed", entity_type=entity_type, entity_id=entity_id, error=str(e))
            raise CascadeConflict(entity_type, entity_id, "delete failed, nothing was removed") from e

    db.expunge_all()

    await invalidate_showtime_cache(movie_ids)
    record_cascade(entity_type, ok=True)
    logger.info("cascade_deleted", **counts)
    return counts


async def _rowcount(db: AsyncSession, statement) -> int:
    result = await db.execute(statement.execution_options(synchronize_session=False))
    return result.rowcount

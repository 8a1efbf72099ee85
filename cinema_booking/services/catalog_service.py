"""
Catalog service: movies, halls and showtimes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.clock import utcnow
from cinema_booking.core.errors import CatalogNotFound, ShowtimeNotFound, ValidationError
from cinema_booking.core.logging import get_logger
from cinema_booking.models.booking import Booking, BookingStatus
from cinema_booking.models.hall import Hall
from cinema_booking.models.movie import Movie
from cinema_booking.models.showtime import Showtime
from cinema_booking.schemas.catalog import HallCreate, MovieCreate, ShowtimeCreate
from cinema_booking.services import seat_inventory
from cinema_booking.services.cache_service import invalidate_showtime_cache

logger = get_logger(__name__)


async def create_movie(db: AsyncSession, movie_data: MovieCreate) -> Movie:
    movie = Movie(**movie_data.model_dump())
    db.add(movie)
    await db.commit()
    await db.refresh(movie)

    logger.info("movie_created", movie_id=movie.id, title=movie.title)
    return movie


async def create_hall(db: AsyncSession, hall_data: HallCreate) -> Hall:
    hall = Hall(**hall_data.model_dump())
    db.add(hall)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError(f"A hall named {hall_data.name!r} already exists")
    await db.refresh(hall)

    logger.info("hall_created", hall_id=hall.id, name=hall.name, seats=hall.total_seats)
    return hall


async def create_showtime(db: AsyncSession, showtime_data: ShowtimeCreate) -> Showtime:
    """Schedule a showtime and create its seat inventory, all seats available."""
    movie = await db.get(Movie, showtime_data.movie_id)
    if movie is None:
        raise ValidationError(f"Movie {showtime_data.movie_id} does not exist")
    hall = await db.get(Hall, showtime_data.hall_id)
    if hall is None:
        raise ValidationError(f"Hall {showtime_data.hall_id} does not exist")

    showtime = Showtime(**showtime_data.model_dump(), movie=movie, hall=hall)
    db.add(showtime)
    try:
        await db.flush()
        seats = seat_inventory.initialize_inventory(db, showtime, hall)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await invalidate_showtime_cache([movie.id])
    logger.info(
        "showtime_created",
        showtime_id=showtime.id,
        movie_id=movie.id,
        hall_id=hall.id,
        seats=seats,
    )
    return showtime


async def get_showtime(db: AsyncSession, showtime_id: int) -> Showtime:
    result = await db.execute(select(Showtime).where(Showtime.id == showtime_id))
    showtime = result.unique().scalar_one_or_none()
    if showtime is None:
        raise ShowtimeNotFound(showtime_id)
    return showtime


async def list_movie_showtimes(
    db: AsyncSession,
    movie_id: int,
    upcoming_only: bool = True,
    now: Optional[datetime] = None,
) -> list[Showtime]:
    """
    Showtimes of one movie ordered by start.
    Uses the ix_showtimes_movie_date index.
    """
    if await db.get(Movie, movie_id) is None:
        raise CatalogNotFound("movie", movie_id)

    query = select(Showtime).where(Showtime.movie_id == movie_id)
    if upcoming_only:
        today = (now or utcnow()).date()
        query = query.where(Showtime.show_date >= today)

    result = await db.execute(query.order_by(Showtime.show_date.asc(), Showtime.start_time.asc()))
    return list(result.unique().scalars().all())


async def dashboard_stats(db: AsyncSession) -> dict:
    """Catalog counts plus revenue from confirmed bookings."""
    total_movies = await db.scalar(select(func.count()).select_from(Movie))
    total_halls = await db.scalar(select(func.count()).select_from(Hall))
    total_showtimes = await db.scalar(select(func.count()).select_from(Showtime))
    total_bookings = await db.scalar(select(func.count()).select_from(Booking))
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Booking.total_amount), 0))
        .where(Booking.status == BookingStatus.CONFIRMED.value)
    )

    return {
        "total_movies": total_movies,
        "total_halls": total_halls,
        "total_showtimes": total_showtimes,
        "total_bookings": total_bookings,
        "total_revenue": Decimal(str(revenue)).quantize(Decimal("0.01")),
        "generated_at": utcnow(),
    }

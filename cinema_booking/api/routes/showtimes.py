"""
Showtime and seat map endpoints.
Showtime listings are cached in Redis; seat maps are always read live.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.db.session import get_db
from cinema_booking.schemas.catalog import ShowtimeListResponse, ShowtimeResponse
from cinema_booking.schemas.hold import SeatMapResponse
from cinema_booking.services import catalog_service, seat_inventory
from cinema_booking.services.cache_service import get_cached_showtimes, set_cached_showtimes
from cinema_booking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Showtimes"])


@router.get("/movies/{movie_id}/showtimes", response_model=ShowtimeListResponse)
async def list_movie_showtimes_endpoint(
    movie_id: int,
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List the showtimes of a movie.
    Results are cached until the catalog changes or the cache TTL runs out.
    """
    cached = await get_cached_showtimes(movie_id, upcoming_only)
    if cached:
        logger.info("showtime_list_cache_hit", movie_id=movie_id)
        cached["cached"] = True
        return ShowtimeListResponse(**cached)

    showtimes = await catalog_service.list_movie_showtimes(db, movie_id, upcoming_only)
    response_data = {
        "movie_id": movie_id,
        "showtimes": [ShowtimeResponse.from_showtime(s).model_dump(mode="json") for s in showtimes],
        "cached": False,
    }

    await set_cached_showtimes(movie_id, upcoming_only, response_data)
    return ShowtimeListResponse(**response_data)


@router.get("/showtimes/{showtime_id}", response_model=ShowtimeResponse)
async def get_showtime_endpoint(
    showtime_id: int,
    db: AsyncSession = Depends(get_db),
):
    showtime = await catalog_service.get_showtime(db, showtime_id)
    return ShowtimeResponse.from_showtime(showtime)


@router.get("/showtimes/{showtime_id}/seats", response_model=SeatMapResponse)
async def get_seat_map_endpoint(
    showtime_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Seat map of a showtime. Not cached: seat states change on every hold."""
    seat_map = await seat_inventory.get_seat_map(db, showtime_id)
    return SeatMapResponse.from_seat_map(showtime_id, seat_map)

"""
Administrator endpoints: booking management, dashboard and catalog.
Every route requires a token with the admin role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.db.session import get_db
from cinema_booking.models.booking import BookingStatus
from cinema_booking.schemas.booking import (
    AdminBookingListResponse, BookingCancelResponse, BookingResponse, BookingSummary,
)
from cinema_booking.schemas.catalog import (
    CascadeDeleteResponse, DashboardResponse, EntityType,
    HallCreate, HallResponse, MovieCreate, MovieResponse, ShowtimeCreate, ShowtimeResponse,
)
from cinema_booking.services import booking_ledger, cascade_service, catalog_service
from cinema_booking.services.interfaces.identity import Actor
from cinema_booking.core.security import require_admin

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/bookings", response_model=AdminBookingListResponse)
async def list_bookings_endpoint(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, optionally filtered by status, with per-status totals."""
    bookings = await booking_ledger.list_bookings(db, status_filter)
    summary = await booking_ledger.booking_summary(db)
    return AdminBookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        summary=BookingSummary(**summary),
    )


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking_endpoint(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Confirm a pending booking. Only allowed once it has a successful payment."""
    return await booking_ledger.confirm_booking(db, booking_id)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingCancelResponse)
async def admin_cancel_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_ledger.cancel_booking(db, booking_id, actor)
    return BookingCancelResponse(
        message="Booking cancelled by administrator",
        booking_id=booking.id,
        status=booking.status,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard_endpoint(db: AsyncSession = Depends(get_db)):
    return DashboardResponse(**await catalog_service.dashboard_stats(db))


@router.post("/movies", response_model=MovieResponse, status_code=status.HTTP_201_CREATED)
async def create_movie_endpoint(
    movie_data: MovieCreate,
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_movie(db, movie_data)


@router.post("/halls", response_model=HallResponse, status_code=status.HTTP_201_CREATED)
async def create_hall_endpoint(
    hall_data: HallCreate,
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_hall(db, hall_data)


@router.post("/showtimes", response_model=ShowtimeResponse, status_code=status.HTTP_201_CREATED)
async def create_showtime_endpoint(
    showtime_data: ShowtimeCreate,
    db: AsyncSession = Depends(get_db),
):
    """Schedule a showtime. Its seat inventory is created with every seat available."""
    showtime = await catalog_service.create_showtime(db, showtime_data)
    return ShowtimeResponse.from_showtime(showtime)


@router.delete("/catalog/{entity_type}/{entity_id}", response_model=CascadeDeleteResponse)
async def delete_catalog_entity_endpoint(
    entity_type: EntityType,
    entity_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a movie, hall or showtime together with its showtimes, seat
    inventory, holds, bookings and payments. All or nothing.
    """
    counts = await cascade_service.delete_entity(db, entity_type, entity_id)
    return CascadeDeleteResponse(**counts)

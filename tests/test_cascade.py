"""
Cascade delete tests: all dependent rows go together, or nothing goes.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import card_fields
from cinema_booking.core.errors import CascadeConflict, CatalogNotFound, ShowtimeNotFound
from cinema_booking.models import Booking, Hall, Movie, Payment, SeatHold, Showtime, ShowtimeSeat
from cinema_booking.schemas.booking import CheckoutRequest
from cinema_booking.services import cascade_service, catalog_service, payment_coordinator, seat_inventory
from cinema_booking.services.interfaces.identity import Actor


async def _count(db: AsyncSession, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def _book(db: AsyncSession, showtime_id: int, seats: list[str], gateway) -> None:
    actor = Actor(user_id="user-1")
    hold = await seat_inventory.attempt_hold(db, showtime_id, seats, actor.user_id)
    request = CheckoutRequest(
        holder_token=hold.holder_token, payment_method="debit_card", payment_fields=card_fields()
    )
    await payment_coordinator.checkout(db, request, actor, gateway)


@pytest.mark.asyncio
async def test_delete_showtime_removes_dependents(db_session: AsyncSession, showtime: Showtime, gateway):
    """Payments, bookings, holds and seats of the showtime are all gone."""
    showtime_id = showtime.id
    await _book(db_session, showtime_id, ["A1", "A2"], gateway)
    await seat_inventory.attempt_hold(db_session, showtime_id, ["B1"], "user-2")

    counts = await cascade_service.delete_entity(db_session, "showtime", showtime_id)

    assert counts["showtimes_deleted"] == 1
    assert counts["bookings_deleted"] == 1
    assert counts["payments_deleted"] == 1
    assert counts["seats_deleted"] == 10
    assert counts["holds_deleted"] == 2

    for model in (Showtime, ShowtimeSeat, SeatHold, Booking, Payment):
        assert await _count(db_session, model) == 0
    assert await _count(db_session, Movie) == 1
    assert await _count(db_session, Hall) == 1

    with pytest.raises(ShowtimeNotFound):
        await catalog_service.get_showtime(db_session, showtime_id)


@pytest.mark.asyncio
async def test_delete_movie_removes_all_its_showtimes(
    db_session: AsyncSession, showtime: Showtime, past_showtime: Showtime, gateway,
):
    movie_id = showtime.movie_id
    await _book(db_session, showtime.id, ["A1"], gateway)

    counts = await cascade_service.delete_entity(db_session, "movie", movie_id)

    assert counts["showtimes_deleted"] == 2
    assert counts["seats_deleted"] == 20
    assert counts["bookings_deleted"] == 1
    assert await _count(db_session, Movie) == 0
    assert await _count(db_session, Hall) == 1
    assert await _count(db_session, Showtime) == 0


@pytest.mark.asyncio
async def test_delete_hall(db_session: AsyncSession, showtime: Showtime):
    hall_id = showtime.hall_id

    counts = await cascade_service.delete_entity(db_session, "hall", hall_id)

    assert counts["showtimes_deleted"] == 1
    assert await _count(db_session, Hall) == 0
    assert await _count(db_session, Movie) == 1


@pytest.mark.asyncio
async def test_delete_missing_entity(db_session: AsyncSession):
    with pytest.raises(CatalogNotFound):
        await cascade_service.delete_entity(db_session, "movie", 12345)


@pytest.mark.asyncio
async def test_failed_cascade_removes_nothing(db_session: AsyncSession, showtime: Showtime, gateway, monkeypatch):
    """A failure halfway through rolls back the rows already deleted."""
    showtime_id = showtime.id
    await _book(db_session, showtime_id, ["A1"], gateway)

    real_rowcount = cascade_service._rowcount
    calls = []

    async def failing_rowcount(db, statement):
        calls.append(statement)
        if len(calls) == 3:
            raise RuntimeError("disk full")
        return await real_rowcount(db, statement)

    monkeypatch.setattr(cascade_service, "_rowcount", failing_rowcount)

    with pytest.raises(CascadeConflict):
        await cascade_service.delete_entity(db_session, "showtime", showtime_id)

    assert await _count(db_session, Payment) == 1
    assert await _count(db_session, Booking) == 1
    assert await _count(db_session, ShowtimeSeat) == 10
    assert await _count(db_session, Showtime) == 1


@pytest.mark.asyncio
async def test_cascade_keeps_the_showtime_lock(db_session: AsyncSession, showtime: Showtime):
    """A caller queued on the showtime lock during a delete still shares it with later callers."""
    showtime_id = showtime.id
    lock = seat_inventory.showtime_locks._lock_for(showtime_id)

    await cascade_service.delete_entity(db_session, "showtime", showtime_id)

    assert seat_inventory.showtime_locks._lock_for(showtime_id) is lock

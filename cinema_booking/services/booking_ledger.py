"""
Booking ledger: durable bookings and their state machine.

    pending ──► confirmed ──► cancelled
       │                          ▲
       └──────────────────────────┘

No transition re-enters pending and cancelled is terminal. Every change goes
through `mark_confirmed` / `mark_cancelled`, which validate the transition.
Changes that also touch seats run under the showtime's lock, in the same
transaction as the seat change.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.clock import utcnow
from cinema_booking.core.config import get_settings
from cinema_booking.core.errors import (
    BookingNotFound, CheckoutInProgress, HoldExpired, InvalidTransition, Unauthorized, ValidationError,
)
from cinema_booking.core.logging import get_logger
from cinema_booking.core.metrics import record_transition
from cinema_booking.models.booking import Booking, BookingStatus
from cinema_booking.models.payment import Payment, PaymentStatus
from cinema_booking.models.seat import HoldStatus, SeatHold
from cinema_booking.services import seat_inventory
from cinema_booking.services.interfaces.identity import SYSTEM_ACTOR, Actor
from cinema_booking.services.seat_inventory import showtime_locks

logger = get_logger(__name__)
settings = get_settings()

CENTS = Decimal("0.01")


def compute_total(ticket_price: Decimal, seat_count: int) -> Decimal:
    """Authoritative booking total: seat count x showtime ticket price."""
    return (Decimal(ticket_price) * seat_count).quantize(CENTS)


async def create_booking(
    db: AsyncSession,
    user_id: str,
    showtime_id: int,
    seat_ids: Iterable[str],
    holder_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Create a pending booking priced from the showtime, never from the client.

    When a holder token is given the hold must be live, belong to the same
    showtime and cover exactly the booked seats.
    """
    now = now or utcnow()
    seats = seat_inventory.normalize_seat_ids(seat_ids)

    async with showtime_locks.acquire(showtime_id):
        try:
            showtime = await seat_inventory.lock_showtime(db, showtime_id)
            if showtime is None:
                raise ValidationError(f"Showtime {showtime_id} does not exist")

            if holder_token is not None:
                hold = await seat_inventory.get_hold(db, holder_token)
                if not seat_inventory.hold_is_live(hold, now):
                    raise HoldExpired(holder_token)
                if hold.showtime_id != showtime_id or sorted(hold.seat_ids) != sorted(seats):
                    raise ValidationError("Seats do not match the seat hold")

                # One live booking per hold
                existing_id = await db.scalar(
                    select(Booking.id).where(
                        Booking.holder_token == holder_token,
                        Booking.status != BookingStatus.CANCELLED.value,
                    )
                )
                if existing_id is not None:
                    raise CheckoutInProgress(holder_token, existing_id)

            booking = Booking(
                user_id=user_id,
                showtime_id=showtime_id,
                holder_token=holder_token,
                selected_seats=seats,
                total_seats=len(seats),
                total_amount=compute_total(showtime.ticket_price, len(seats)),
                status=BookingStatus.PENDING.value,
            )
            db.add(booking)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    await db.refresh(booking)
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        showtime_id=showtime_id,
        seats=seats,
        total_amount=str(booking.total_amount),
    )
    return booking


async def mark_confirmed(db: AsyncSession, booking: Booking) -> Booking:
    _check_transition(booking, BookingStatus.CONFIRMED)
    booking.status = BookingStatus.CONFIRMED.value
    await db.flush()
    record_transition(BookingStatus.CONFIRMED.value)
    logger.info("booking_confirmed", booking_id=booking.id, user_id=booking.user_id)
    return booking


async def mark_cancelled(
    db: AsyncSession,
    booking: Booking,
    actor: Actor,
    reason: str,
) -> Booking:
    _check_transition(booking, BookingStatus.CANCELLED)
    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_by = actor.user_id
    booking.cancel_reason = reason
    await db.flush()
    record_transition(BookingStatus.CANCELLED.value)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        cancelled_by=actor.user_id,
        reason=reason,
    )
    return booking


def _check_transition(booking: Booking, target: BookingStatus) -> None:
    current = booking.booking_status
    if not current.can_transition_to(target):
        raise InvalidTransition(booking.id, current.value, target.value)


async def load_booking(db: AsyncSession, booking_id: int) -> Booking:
    """Fresh copy of a booking, bypassing the identity map. No access check."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


async def get_payment(db: AsyncSession, booking_id: int) -> Optional[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.booking_id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def confirm_booking(
    db: AsyncSession,
    booking_id: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Confirm a pending booking that already has a successful payment.
    If the booking's seat hold is still live its seats become booked.
    """
    now = now or utcnow()
    booking = await load_booking(db, booking_id)

    async with showtime_locks.acquire(booking.showtime_id):
        try:
            await seat_inventory.lock_showtime(db, booking.showtime_id)
            booking = await load_booking(db, booking_id)
            _check_transition(booking, BookingStatus.CONFIRMED)

            payment = await get_payment(db, booking_id)
            if payment is None or payment.status != PaymentStatus.SUCCESS.value:
                raise InvalidTransition(
                    booking_id,
                    booking.status,
                    BookingStatus.CONFIRMED.value,
                    reason="no successful payment",
                )

            if booking.holder_token:
                hold = await seat_inventory.get_hold(db, booking.holder_token)
                if hold is not None and hold.status == HoldStatus.ACTIVE.value:
                    await seat_inventory.confirm_hold_locked(db, booking.holder_token, booking.id, now)

            await mark_confirmed(db, booking)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    actor: Actor,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> Booking:
    """
    Cancel a pending or confirmed booking and free its seats.

    Raises:
        BookingNotFound: no such booking
        Unauthorized: actor is neither the owner nor an admin
        InvalidTransition: already cancelled, or the showtime has started
    """
    now = now or utcnow()
    booking = await load_booking(db, booking_id)
    if not actor.can_access(booking.user_id):
        logger.warning("cancel_unauthorized", booking_id=booking_id, actor=actor.user_id)
        raise Unauthorized("You are not allowed to cancel this booking")

    async with showtime_locks.acquire(booking.showtime_id):
        try:
            showtime = await seat_inventory.lock_showtime(db, booking.showtime_id)
            booking = await load_booking(db, booking_id)
            _check_transition(booking, BookingStatus.CANCELLED)

            if (
                showtime is not None
                and not settings.ALLOW_CANCEL_AFTER_START
                and showtime.starts_at <= now
            ):
                raise InvalidTransition(
                    booking_id,
                    booking.status,
                    BookingStatus.CANCELLED.value,
                    reason="showtime has already started",
                )

            released = await _release_booking_seats_locked(db, booking)
            cancel_reason = reason or ("admin_cancelled" if actor.user_id != booking.user_id else "user_cancelled")
            await mark_cancelled(db, booking, actor, cancel_reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info("booking_seats_released", booking_id=booking_id, seats_released=released)
    return booking


async def _release_booking_seats_locked(db: AsyncSession, booking: Booking) -> int:
    if booking.status == BookingStatus.CONFIRMED.value:
        return await seat_inventory.release_booked_seats_locked(db, booking.id)
    if booking.holder_token:
        return await seat_inventory.release_hold_locked(db, booking.holder_token)
    return 0


async def cancel_stale_pending(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Cancel pending bookings whose seat hold is no longer live.
    A pending booking without a live hold can never be confirmed.
    """
    now = now or utcnow()
    result = await db.execute(
        select(Booking.id, Booking.showtime_id)
        .outerjoin(SeatHold, SeatHold.holder_token == Booking.holder_token)
        .where(
            Booking.status == BookingStatus.PENDING.value,
            (SeatHold.holder_token.is_(None))
            | (SeatHold.status != HoldStatus.ACTIVE.value)
            | (SeatHold.expires_at <= now),
        )
    )
    candidates = result.all()

    cancelled = 0
    for booking_id, showtime_id in candidates:
        async with showtime_locks.acquire(showtime_id):
            try:
                await seat_inventory.lock_showtime(db, showtime_id)
                booking = await load_booking(db, booking_id)
                hold = await seat_inventory.get_hold(db, booking.holder_token) if booking.holder_token else None
                if booking.status != BookingStatus.PENDING.value or seat_inventory.hold_is_live(hold, now):
                    await db.rollback()
                    continue
                await _release_booking_seats_locked(db, booking)
                await mark_cancelled(db, booking, SYSTEM_ACTOR, "hold_expired")
                await db.commit()
                cancelled += 1
            except BookingNotFound:
                # Deleted by a cascade since the scan
                await db.rollback()
            except Exception:
                await db.rollback()
                raise
    return cancelled


async def get_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    booking = await load_booking(db, booking_id)
    if not actor.can_access(booking.user_id):
        logger.warning("booking_access_denied", booking_id=booking_id, actor=actor.user_id)
        raise Unauthorized()
    return booking


async def list_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_bookings(db: AsyncSession, status: Optional[BookingStatus] = None) -> list[Booking]:
    query = select(Booking)
    if status is not None:
        query = query.where(Booking.status == status.value)
    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return list(result.scalars().all())


async def booking_summary(db: AsyncSession) -> dict:
    """Counts per status and revenue from confirmed bookings."""
    result = await db.execute(
        select(Booking.status, func.count(), func.coalesce(func.sum(Booking.total_amount), 0))
        .group_by(Booking.status)
    )
    summary = {
        "total": 0,
        BookingStatus.PENDING.value: 0,
        BookingStatus.CONFIRMED.value: 0,
        BookingStatus.CANCELLED.value: 0,
        "revenue": Decimal("0.00"),
    }
    for status, count, amount in result.all():
        summary[status] = count
        summary["total"] += count
        if status == BookingStatus.CONFIRMED.value:
            summary["revenue"] = Decimal(str(amount)).quantize(CENTS)
    return summary
"""
Checkout: hold -> pending booking -> charge -> confirm, as one logical unit.

TRANSACTION LAYOUT
==================

  tx 1  (showtime lock)   create pending booking from the live hold
        -- lock released, transaction committed --
        gateway.charge()  may take seconds; no lock, no open transaction
  tx 2  (showtime lock)   success: confirm hold (seats -> booked),
                                   record payment(success), booking -> confirmed
                          failure: release hold, booking -> cancelled,
                                   record payment(failed) if the gateway answered

Only two end states are observable: a confirmed booking whose seats are
booked, or a cancelled booking whose seats are available again. If the
process dies between tx 1 and tx 2 the hold expires and the sweeper cancels
the pending booking.

A hold carries at most one live booking. A second submit while the first is
still charging is rejected with CheckoutInProgress and never reaches the
gateway; a submit after it finished returns the confirmed booking.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.core.clock import utcnow
from cinema_booking.core.errors import (
    BookingNotFound, CheckoutInProgress, HoldExpired, InvalidTransition, PaymentFailed, Unauthorized,
    ValidationError,
)
from cinema_booking.core.logging import get_logger
from cinema_booking.core.metrics import gateway_latency, record_checkout
from cinema_booking.models.booking import Booking, BookingStatus
from cinema_booking.models.payment import Payment, PaymentStatus
from cinema_booking.models.seat import HoldStatus
from cinema_booking.schemas.booking import CheckoutRequest
from cinema_booking.services import booking_ledger, seat_inventory
from cinema_booking.services.interfaces.identity import SYSTEM_ACTOR, Actor
from cinema_booking.services.interfaces.payment_gateway import ChargeResult, PaymentGateway
from cinema_booking.services.seat_inventory import showtime_locks

logger = get_logger(__name__)


@dataclass
class CheckoutResult:
    booking: Booking
    payment: Payment


@dataclass(frozen=True)
class PendingCheckout:
    """
    The pending booking as plain values. A rollback expires every ORM
    instance in the session, so the rollback and refund paths only read these.
    """

    booking_id: int
    showtime_id: int
    holder_token: str
    total_amount: Decimal
    payment_method: str


async def checkout(
    db: AsyncSession,
    request: CheckoutRequest,
    actor: Actor,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """
    Run the whole reservation transaction for one seat hold.

    A hold that already produced a confirmed booking returns that booking
    without charging again.

    Raises:
        ValidationError: unknown holder token
        Unauthorized: the hold belongs to another user
        CheckoutInProgress: another checkout of the same hold has not finished
        HoldExpired: the hold lapsed before the booking could be confirmed
        PaymentFailed: the gateway declined or could not be reached
    """
    clock_pinned = now is not None
    now = now or utcnow()
    token = request.holder_token

    hold = await seat_inventory.get_hold(db, token)
    if hold is None:
        raise ValidationError("Unknown seat hold")
    if hold.user_id != actor.user_id:
        logger.warning("checkout_foreign_hold", holder_token=token, actor=actor.user_id)
        raise Unauthorized("This seat hold belongs to another user")

    if hold.status == HoldStatus.CONFIRMED.value:
        existing = await _completed_checkout(db, token)
        if existing is not None:
            logger.info("checkout_replayed", holder_token=token, booking_id=existing.booking.id)
            return existing
    if not seat_inventory.hold_is_live(hold, now):
        record_checkout("hold_expired")
        raise HoldExpired(token)

    # Step 1-2: pending booking priced by the server
    try:
        booking = await booking_ledger.create_booking(
            db,
            user_id=actor.user_id,
            showtime_id=hold.showtime_id,
            seat_ids=hold.seat_ids,
            holder_token=token,
            now=now,
        )
    except CheckoutInProgress as e:
        existing = await _completed_checkout(db, token)
        if existing is not None:
            logger.info("checkout_replayed", holder_token=token, booking_id=existing.booking.id)
            return existing
        record_checkout("duplicate")
        logger.warning("checkout_duplicate", holder_token=token, booking_id=e.booking_id)
        raise

    pending = PendingCheckout(
        booking_id=booking.id,
        showtime_id=booking.showtime_id,
        holder_token=token,
        total_amount=booking.total_amount,
        payment_method=request.payment_method.value,
    )
    if request.total_amount is not None and request.total_amount != pending.total_amount:
        logger.warning(
            "client_total_mismatch",
            booking_id=pending.booking_id,
            client_total=str(request.total_amount),
            server_total=str(pending.total_amount),
        )

    # Step 3: charge outside any lock
    started = time.perf_counter()
    try:
        charge = await gateway.charge(
            pending.total_amount,
            pending.payment_method,
            request.payment_fields.model_dump(exclude_none=True),
        )
    except Exception as e:
        logger.error("gateway_error", booking_id=pending.booking_id, error=str(e))
        await _roll_back(db, pending, charge=None, reason="gateway_error")
        record_checkout("gateway_error")
        raise PaymentFailed("payment gateway unavailable", pending.booking_id) from e
    finally:
        gateway_latency.observe(time.perf_counter() - started)

    if not charge.success:
        reason = charge.reason or "declined"
        await _roll_back(db, pending, charge=charge, reason=reason)
        record_checkout("declined")
        raise PaymentFailed(reason, pending.booking_id)

    # Step 4: confirm seats, payment and booking together
    result = await _finalize(db, pending, charge, check_time=now if clock_pinned else utcnow())
    if result is None:
        await gateway.refund(charge.transaction_id, pending.total_amount)
        record_checkout("hold_expired")
        logger.warning("checkout_refunded", booking_id=pending.booking_id, transaction_id=charge.transaction_id)
        raise HoldExpired(token)

    record_checkout("confirmed")
    logger.info(
        "checkout_completed",
        booking_id=pending.booking_id,
        user_id=actor.user_id,
        total_amount=str(pending.total_amount),
        transaction_id=charge.transaction_id,
    )
    return result


async def _finalize(
    db: AsyncSession,
    pending: PendingCheckout,
    charge: ChargeResult,
    check_time: datetime,
) -> Optional[CheckoutResult]:
    """Confirm everything, or compensate and return None if the hold lapsed."""
    async with showtime_locks.acquire(pending.showtime_id):
        try:
            showtime = await seat_inventory.lock_showtime(db, pending.showtime_id)
            if showtime is None:
                # Deleted by an admin cascade while the charge was in flight
                await db.rollback()
                logger.warning("checkout_showtime_deleted", booking_id=pending.booking_id)
                return None

            await seat_inventory.confirm_hold_locked(db, pending.holder_token, pending.booking_id, check_time)
            payment = Payment(
                booking_id=pending.booking_id,
                amount=pending.total_amount,
                payment_method=pending.payment_method,
                status=PaymentStatus.SUCCESS.value,
                transaction_id=charge.transaction_id,
            )
            db.add(payment)
            booking = await booking_ledger.load_booking(db, pending.booking_id)
            await booking_ledger.mark_confirmed(db, booking)
            await db.commit()
            return CheckoutResult(booking=booking, payment=payment)
        except (HoldExpired, InvalidTransition, BookingNotFound) as e:
            logger.warning("checkout_confirm_failed", booking_id=pending.booking_id, error=str(e))
            # Drop the partial confirm; compensation frees the seats
            await db.rollback()
            await _compensate_locked(db, pending, charge, reason="hold_expired")
            return None
        except Exception:
            await db.rollback()
            raise


async def _roll_back(
    db: AsyncSession,
    pending: PendingCheckout,
    charge: Optional[ChargeResult],
    reason: str,
) -> None:
    async with showtime_locks.acquire(pending.showtime_id):
        await _compensate_locked(db, pending, charge, reason)


async def _compensate_locked(
    db: AsyncSession,
    pending: PendingCheckout,
    charge: Optional[ChargeResult],
    reason: str,
) -> None:
    """Release the hold, cancel the booking, record the failed payment."""
    try:
        await seat_inventory.lock_showtime(db, pending.showtime_id)
        try:
            booking = await booking_ledger.load_booking(db, pending.booking_id)
        except BookingNotFound:
            await db.rollback()
            return

        await seat_inventory.release_hold_locked(db, pending.holder_token)
        if booking.status == BookingStatus.PENDING.value:
            await booking_ledger.mark_cancelled(db, booking, SYSTEM_ACTOR, reason)

        if charge is not None and await booking_ledger.get_payment(db, pending.booking_id) is None:
            db.add(
                Payment(
                    booking_id=pending.booking_id,
                    amount=pending.total_amount,
                    payment_method=pending.payment_method,
                    status=PaymentStatus.FAILED.value,
                    transaction_id=charge.transaction_id,
                    failure_reason=reason,
                )
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("checkout_rolled_back", booking_id=pending.booking_id, reason=reason)


async def _completed_checkout(db: AsyncSession, holder_token: str) -> Optional[CheckoutResult]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.holder_token == holder_token,
            Booking.status == BookingStatus.CONFIRMED.value,
        )
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        return None
    payment = await booking_ledger.get_payment(db, booking.id)
    return CheckoutResult(booking=booking, payment=payment)

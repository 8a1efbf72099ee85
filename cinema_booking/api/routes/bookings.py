"""
Checkout and booking endpoints for patrons.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cinema_booking.db.session import get_db
from cinema_booking.schemas.booking import (
    BookingCancelResponse, BookingResponse, CheckoutRequest, CheckoutResponse,
)
from cinema_booking.services import booking_ledger, payment_coordinator
from cinema_booking.services.gateway_factory import get_payment_gateway
from cinema_booking.services.interfaces.identity import Actor
from cinema_booking.services.interfaces.payment_gateway import PaymentGateway
from cinema_booking.core.security import get_current_actor

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout_endpoint(
    checkout_data: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Pay for a seat hold and confirm the booking.

    The charged amount is seat count x ticket price as stored on the server.
    On a declined payment (402) or an expired hold (410) the seats are
    released and the booking ends up cancelled; nothing stays half-done.
    Submitting again while the first checkout is still charging gives 409.
    """
    result = await payment_coordinator.checkout(db, checkout_data, actor, gateway)
    return CheckoutResponse(
        booking_id=result.booking.id,
        status=result.booking.status,
        total_amount=result.booking.total_amount,
        selected_seats=result.booking.selected_seats,
        payment_status=result.payment.status if result.payment else "none",
    )


@router.get("", response_model=list[BookingResponse])
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_ledger.list_user_bookings(db, actor.user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await booking_ledger.get_booking(db, booking_id, actor)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release its seats back to the showtime."""
    booking = await booking_ledger.cancel_booking(db, booking_id, actor)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )

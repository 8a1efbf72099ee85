from cinema_booking.models.movie import Movie
from cinema_booking.models.hall import Hall
from cinema_booking.models.showtime import Showtime
from cinema_booking.models.seat import ShowtimeSeat, SeatHold, SeatState, HoldStatus
from cinema_booking.models.booking import Booking, BookingStatus
from cinema_booking.models.payment import Payment, PaymentStatus

__all__ = [
    "Movie", "Hall", "Showtime",
    "ShowtimeSeat", "SeatHold", "SeatState", "HoldStatus",
    "Booking", "BookingStatus",
    "Payment", "PaymentStatus",
]

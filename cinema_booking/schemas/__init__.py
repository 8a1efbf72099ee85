from cinema_booking.schemas.catalog import (
    MovieCreate, MovieResponse, HallCreate, HallResponse,
    ShowtimeCreate, ShowtimeResponse, ShowtimeListResponse,
    DashboardResponse, CascadeDeleteResponse,
)
from cinema_booking.schemas.hold import HoldCreate, HoldResponse, HoldReleaseResponse, SeatMapResponse
from cinema_booking.schemas.booking import (
    PaymentMethod, PaymentFields, CheckoutRequest, CheckoutResponse,
    BookingResponse, BookingCancelResponse, BookingSummary, AdminBookingListResponse,
)

__all__ = [
    "MovieCreate", "MovieResponse", "HallCreate", "HallResponse",
    "ShowtimeCreate", "ShowtimeResponse", "ShowtimeListResponse",
    "DashboardResponse", "CascadeDeleteResponse",
    "HoldCreate", "HoldResponse", "HoldReleaseResponse", "SeatMapResponse",
    "PaymentMethod", "PaymentFields", "CheckoutRequest", "CheckoutResponse",
    "BookingResponse", "BookingCancelResponse", "BookingSummary", "AdminBookingListResponse",
]

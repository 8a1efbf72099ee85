"""
Domain errors for the booking core.

Every error carries a stable code, a user-safe message and the HTTP status
the API layer renders it with. Extra fields (e.g. conflicting seats) are
exposed through `extra()` so callers can retry with a different selection.
"""

from enum import Enum
from typing import Any, Iterable


class ErrorCode(str, Enum):
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    CATALOG_NOT_FOUND = "CATALOG_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CASCADE_CONFLICT = "CASCADE_CONFLICT"
    CHECKOUT_IN_PROGRESS = "CHECKOUT_IN_PROGRESS"


class DomainError(Exception):
    """Base domain error with code, message and HTTP status."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {}

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class SeatUnavailable(DomainError):
    """One or more requested seats are not available."""

    code = ErrorCode.SEAT_UNAVAILABLE
    status_code = 409

    def __init__(self, conflicting_seats: Iterable[str]):
        self.conflicting_seats = sorted(conflicting_seats, key=seat_sort_key)
        super().__init__(
            f"Seats not available: {', '.join(self.conflicting_seats)}. Please select different seats."
        )

    def extra(self) -> dict[str, Any]:
        return {"conflicting_seats": self.conflicting_seats}


class HoldExpired(DomainError):
    code = ErrorCode.HOLD_EXPIRED
    status_code = 410

    def __init__(self, holder_token: str):
        self.holder_token = holder_token
        super().__init__("Seat hold has expired. Please select your seats again.")


class PaymentFailed(DomainError):
    code = ErrorCode.PAYMENT_FAILED
    status_code = 402

    def __init__(self, reason: str, booking_id: int | None = None):
        self.reason = reason
        self.booking_id = booking_id
        super().__init__(f"Payment failed: {reason}")

    def extra(self) -> dict[str, Any]:
        return {"reason": self.reason, "booking_id": self.booking_id}


class BookingNotFound(DomainError):
    code = ErrorCode.BOOKING_NOT_FOUND
    status_code = 404

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class CatalogNotFound(DomainError):
    code = ErrorCode.CATALOG_NOT_FOUND
    status_code = 404

    def __init__(self, entity_type: str, entity_id: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")


class ShowtimeNotFound(CatalogNotFound):
    def __init__(self, showtime_id: int):
        super().__init__("showtime", showtime_id)


class Unauthorized(DomainError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 403

    def __init__(self, message: str = "You are not allowed to access this booking"):
        super().__init__(message)


class ValidationError(DomainError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class InvalidTransition(DomainError):
    code = ErrorCode.INVALID_TRANSITION
    status_code = 409

    def __init__(self, booking_id: int, current: str, target: str, reason: str | None = None):
        self.booking_id = booking_id
        self.current = current
        self.target = target
        message = f"Booking {booking_id} cannot move from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {"current_status": self.current, "target_status": self.target}


class CheckoutInProgress(DomainError):
    """Another checkout of the same seat hold is already underway."""

    code = ErrorCode.CHECKOUT_IN_PROGRESS
    status_code = 409

    def __init__(self, holder_token: str, booking_id: int):
        self.holder_token = holder_token
        self.booking_id = booking_id
        super().__init__("A checkout for this seat hold is already in progress")

    def extra(self) -> dict[str, Any]:
        return {"booking_id": self.booking_id}


class CascadeConflict(DomainError):
    code = ErrorCode.CASCADE_CONFLICT
    status_code = 409

    def __init__(self, entity_type: str, entity_id: int, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Could not delete {entity_type} {entity_id}: {reason}")


def seat_sort_key(seat_id: str) -> tuple[str, int]:
    """Sort "B10" after "B9": row letters first, then the numeric column."""
    row = seat_id.rstrip("0123456789")
    column = seat_id[len(row):]
    return row, int(column) if column else 0

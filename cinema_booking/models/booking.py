"""
Booking model representing a patron's seats in one showtime.

Key design decisions:
- `total_amount` is computed server-side from seat count x showtime price
- Status only moves forward: pending -> confirmed/cancelled, confirmed -> cancelled
- `holder_token` links a pending booking to the seat hold it was created from,
  so the sweeper can cancel bookings whose hold is gone
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint, Index, JSON

from cinema_booking.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    showtime_id = Column(Integer, ForeignKey("showtimes.id"), nullable=False, index=True)
    holder_token = Column(String(64), nullable=True, index=True)
    selected_seats = Column(JSON, nullable=False)
    total_seats = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    cancelled_by = Column(String(64), nullable=True)
    cancel_reason = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_booking_total_seats_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="check_booking_status",
        ),
        Index("ix_bookings_status_created", "status", "created_at"),
    )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def booking_date(self):
        return self.created_at

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, showtime={self.showtime_id}, status={self.status})>"

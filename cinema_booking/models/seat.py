"""
Seat inventory models.

ShowtimeSeat is the authoritative per-showtime seat state; SeatHold is the
server-side reservation record a checkout refers to by holder token.

Key design decisions:
- Unique (showtime_id, seat_id): one state per seat, enforced by the DB
- CHECK constraints tie the optional columns to the state, so a held seat
  can never exist without a token and an expiry
- Index on (holder_token) because release/confirm address seats by token
"""

import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint, CheckConstraint, JSON,
)

from cinema_booking.db.base import Base, TimestampMixin


class SeatState(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"


class HoldStatus(str, enum.Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"


class ShowtimeSeat(Base):
    __tablename__ = "showtime_seats"

    id = Column(Integer, primary_key=True)
    showtime_id = Column(Integer, ForeignKey("showtimes.id"), nullable=False, index=True)
    seat_id = Column(String(8), nullable=False)
    state = Column(String(20), nullable=False, default=SeatState.AVAILABLE.value)
    holder_token = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        UniqueConstraint("showtime_id", "seat_id", name="uq_showtime_seat"),
        CheckConstraint("state IN ('available', 'held', 'booked')", name="check_seat_state"),
        CheckConstraint(
            "state != 'held' OR (holder_token IS NOT NULL AND expires_at IS NOT NULL)",
            name="check_held_seat_has_token",
        ),
        Index("ix_showtime_seats_holder_token", "holder_token"),
        Index("ix_showtime_seats_state_expiry", "state", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<ShowtimeSeat(showtime={self.showtime_id}, seat={self.seat_id}, state={self.state})>"


class SeatHold(Base, TimestampMixin):
    __tablename__ = "seat_holds"

    holder_token = Column(String(64), primary_key=True)
    showtime_id = Column(Integer, ForeignKey("showtimes.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    seat_ids = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default=HoldStatus.ACTIVE.value)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'confirmed', 'released', 'expired')",
            name="check_hold_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<SeatHold(token={self.holder_token}, showtime={self.showtime_id}, status={self.status})>"

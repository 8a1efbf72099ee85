"""
Payment record for a booking's charge attempt.
One payment per booking; a booking is confirmed only with a successful one.
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint

from cinema_booking.db.base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    transaction_id = Column(String(64), nullable=True)
    failure_reason = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('success', 'failed', 'pending')", name="check_payment_status"),
    )

    @property
    def payment_date(self):
        return self.created_at

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status})>"

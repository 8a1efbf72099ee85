"""
Pydantic schemas for checkout, bookings and payments.
"""

import enum
import re
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from cinema_booking.core.clock import utcnow


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"

    @property
    def is_card(self) -> bool:
        return self in (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD)


_EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")


class PaymentFields(BaseModel):
    card_number: Optional[str] = Field(None, max_length=23)
    expiry_date: Optional[str] = None
    cvv: Optional[str] = Field(None, pattern=r"^\d{3,4}$")
    card_holder: Optional[str] = Field(None, min_length=1, max_length=100)
    paypal_email: Optional[EmailStr] = None

    @field_validator("card_number")
    @classmethod
    def card_number_digits(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        digits = value.replace(" ", "").replace("-", "")
        if not digits.isdigit() or not 13 <= len(digits) <= 19:
            raise ValueError("card_number must contain 13 to 19 digits")
        return digits

    @field_validator("expiry_date")
    @classmethod
    def expiry_not_past(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        match = _EXPIRY_PATTERN.match(value)
        if not match:
            raise ValueError("expiry_date must be MM/YY")
        month, year = int(match.group(1)), 2000 + int(match.group(2))
        today = utcnow()
        if (year, month) < (today.year, today.month):
            raise ValueError("card has expired")
        return value


class CheckoutRequest(BaseModel):
    """
    Message handed from seat selection to checkout.
    `total_amount` is what the client displayed; the server never charges it.
    """

    holder_token: str = Field(..., min_length=1, max_length=64)
    payment_method: PaymentMethod
    payment_fields: PaymentFields = Field(default_factory=PaymentFields)
    total_amount: Optional[Decimal] = None

    @model_validator(mode="after")
    def fields_match_method(self) -> "CheckoutRequest":
        fields = self.payment_fields
        if self.payment_method.is_card:
            missing = [
                name for name in ("card_number", "expiry_date", "cvv", "card_holder")
                if getattr(fields, name) is None
            ]
            if missing:
                raise ValueError(f"missing payment fields: {', '.join(missing)}")
        elif fields.paypal_email is None:
            raise ValueError("missing payment fields: paypal_email")
        return self


class CheckoutResponse(BaseModel):
    booking_id: int
    status: str
    total_amount: Decimal
    selected_seats: list[str]
    payment_status: str


class BookingResponse(BaseModel):
    id: int
    user_id: str
    showtime_id: int
    selected_seats: list[str]
    total_seats: int
    total_amount: Decimal
    status: str
    cancelled_by: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: str


class BookingSummary(BaseModel):
    total: int
    pending: int
    confirmed: int
    cancelled: int
    revenue: Decimal


class AdminBookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    summary: BookingSummary

"""
Pydantic schemas for seat holds and seat maps.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from cinema_booking.models.seat import SeatState


class HoldCreate(BaseModel):
    showtime_id: int
    seat_ids: list[str] = Field(..., min_length=1, max_length=20)
    ttl_seconds: Optional[int] = Field(None, gt=0)


class HoldResponse(BaseModel):
    holder_token: str
    showtime_id: int
    seat_ids: list[str]
    expires_at: datetime
    status: str

    model_config = {"from_attributes": True}


class HoldReleaseResponse(BaseModel):
    holder_token: str
    seats_released: int


class SeatStatus(BaseModel):
    seat_id: str
    state: SeatState


class SeatMapResponse(BaseModel):
    showtime_id: int
    seats: list[SeatStatus]
    available: int
    held: int
    booked: int

    @classmethod
    def from_seat_map(cls, showtime_id: int, seat_map: dict[str, SeatState]) -> "SeatMapResponse":
        states = list(seat_map.values())
        return cls(
            showtime_id=showtime_id,
            seats=[SeatStatus(seat_id=seat_id, state=state) for seat_id, state in seat_map.items()],
            available=states.count(SeatState.AVAILABLE),
            held=states.count(SeatState.HELD),
            booked=states.count(SeatState.BOOKED),
        )

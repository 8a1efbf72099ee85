"""
Pydantic schemas for catalog records (movies, halls, showtimes).
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

from cinema_booking.models.hall import MAX_LAYOUT_ROWS


class MovieCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    genre: Optional[str] = Field(None, max_length=100)
    duration_minutes: int = Field(..., gt=0, le=1000)
    release_date: Optional[date] = None
    poster_url: Optional[str] = Field(None, max_length=500)


class MovieResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    genre: Optional[str]
    duration_minutes: int
    release_date: Optional[date]
    poster_url: Optional[str]

    model_config = {"from_attributes": True}


class HallCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    total_seats: int = Field(..., gt=0)
    layout_rows: int = Field(..., gt=0, le=MAX_LAYOUT_ROWS)
    layout_columns: int = Field(..., gt=0, le=100)

    @model_validator(mode="after")
    def seats_fit_layout(self) -> "HallCreate":
        if self.total_seats > self.layout_rows * self.layout_columns:
            raise ValueError("total_seats exceeds layout_rows x layout_columns")
        return self


class HallResponse(BaseModel):
    id: int
    name: str
    total_seats: int
    layout_rows: int
    layout_columns: int

    model_config = {"from_attributes": True}


class ShowtimeCreate(BaseModel):
    movie_id: int
    hall_id: int
    show_date: date
    start_time: time
    end_time: time
    ticket_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def ends_after_start(self) -> "ShowtimeCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ShowtimeResponse(BaseModel):
    id: int
    movie_id: int
    hall_id: int
    show_date: date
    start_time: time
    end_time: time
    ticket_price: Decimal
    movie_title: str
    hall_name: str
    total_seats: int

    @classmethod
    def from_showtime(cls, showtime) -> "ShowtimeResponse":
        return cls(
            id=showtime.id,
            movie_id=showtime.movie_id,
            hall_id=showtime.hall_id,
            show_date=showtime.show_date,
            start_time=showtime.start_time,
            end_time=showtime.end_time,
            ticket_price=showtime.ticket_price,
            movie_title=showtime.movie.title,
            hall_name=showtime.hall.name,
            total_seats=showtime.hall.total_seats,
        )


class ShowtimeListResponse(BaseModel):
    movie_id: int
    showtimes: list[ShowtimeResponse]
    cached: bool = False


class DashboardResponse(BaseModel):
    total_movies: int
    total_halls: int
    total_showtimes: int
    total_bookings: int
    total_revenue: Decimal
    generated_at: datetime


EntityType = Literal["movie", "hall", "showtime"]


class CascadeDeleteResponse(BaseModel):
    entity_type: EntityType
    entity_id: int
    showtimes_deleted: int
    bookings_deleted: int
    payments_deleted: int
    seats_deleted: int
    holds_deleted: int

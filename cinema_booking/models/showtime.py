"""
Showtime model: a scheduled screening of a movie in a hall.

Key design decisions:
- `ticket_price` is the only price source for bookings; client totals are advisory
- Index on (movie_id, show_date) for the "upcoming showtimes of a movie" listing
- The showtime row doubles as the database-level lock for its seat inventory
"""

from sqlalchemy import Column, Integer, Date, Time, Numeric, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from cinema_booking.core.clock import combine_utc
from cinema_booking.db.base import Base, TimestampMixin


class Showtime(Base, TimestampMixin):
    __tablename__ = "showtimes"

    id = Column(Integer, primary_key=True, index=True)
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=False, index=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    show_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    ticket_price = Column(Numeric(10, 2), nullable=False)

    movie = relationship("Movie", lazy="joined", innerjoin=True)
    hall = relationship("Hall", lazy="joined", innerjoin=True)

    __table_args__ = (
        CheckConstraint("ticket_price > 0", name="check_showtime_price_positive"),
        Index("ix_showtimes_movie_date", "movie_id", "show_date"),
    )

    @property
    def starts_at(self):
        return combine_utc(self.show_date, self.start_time)

    def __repr__(self) -> str:
        return f"<Showtime(id={self.id}, movie={self.movie_id}, hall={self.hall_id}, date={self.show_date})>"

"""
Movie catalog record. Showtimes reference movies by id.
"""

from sqlalchemy import Column, Integer, String, Date, CheckConstraint

from cinema_booking.db.base import Base, TimestampMixin


class Movie(Base, TimestampMixin):
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    genre = Column(String(100), nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    release_date = Column(Date, nullable=True)
    poster_url = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_movie_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title={self.title})>"

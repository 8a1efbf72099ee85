"""
Hall model with a rectangular seat layout.

Key design decisions:
- Seat ids are derived from the layout in row-major order ("A1".."A5", "B1"..)
- Only the first `total_seats` positions exist, so a layout may leave the
  tail of the last row empty
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from cinema_booking.db.base import Base, TimestampMixin

MAX_LAYOUT_ROWS = 26


class Hall(Base, TimestampMixin):
    __tablename__ = "halls"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    total_seats = Column(Integer, nullable=False)
    layout_rows = Column(Integer, nullable=False)
    layout_columns = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_hall_total_seats_positive"),
        CheckConstraint(
            "total_seats <= layout_rows * layout_columns",
            name="check_hall_seats_fit_layout",
        ),
        CheckConstraint(f"layout_rows BETWEEN 1 AND {MAX_LAYOUT_ROWS}", name="check_hall_layout_rows"),
        CheckConstraint("layout_columns > 0", name="check_hall_layout_columns"),
    )

    def seat_ids(self) -> list[str]:
        """All seat identifiers of this hall, in row-major order."""
        seats = []
        for row_index in range(self.layout_rows):
            row = chr(ord("A") + row_index)
            for column in range(1, self.layout_columns + 1):
                if len(seats) == self.total_seats:
                    return seats
                seats.append(f"{row}{column}")
        return seats

    def __repr__(self) -> str:
        return f"<Hall(id={self.id}, name={self.name}, seats={self.total_seats})>"

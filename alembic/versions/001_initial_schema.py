"""Initial schema: catalog, seat inventory, holds, bookings and payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "movies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("release_date", sa.Date(), nullable=True),
        sa.Column("poster_url", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("duration_minutes > 0", name="check_movie_duration_positive"),
    )
    op.create_index("ix_movies_id", "movies", ["id"])

    op.create_table(
        "halls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("layout_rows", sa.Integer(), nullable=False),
        sa.Column("layout_columns", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_hall_total_seats_positive"),
        sa.CheckConstraint("total_seats <= layout_rows * layout_columns", name="check_hall_seats_fit_layout"),
        sa.CheckConstraint("layout_rows BETWEEN 1 AND 26", name="check_hall_layout_rows"),
        sa.CheckConstraint("layout_columns > 0", name="check_hall_layout_columns"),
    )
    op.create_index("ix_halls_id", "halls", ["id"])

    op.create_table(
        "showtimes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("movie_id", sa.Integer(), sa.ForeignKey("movies.id"), nullable=False),
        sa.Column("hall_id", sa.Integer(), sa.ForeignKey("halls.id"), nullable=False),
        sa.Column("show_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("ticket_price", sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("ticket_price > 0", name="check_showtime_price_positive"),
    )
    op.create_index("ix_showtimes_id", "showtimes", ["id"])
    op.create_index("ix_showtimes_movie_id", "showtimes", ["movie_id"])
    op.create_index("ix_showtimes_hall_id", "showtimes", ["hall_id"])
    # "Upcoming showtimes of a movie" filters on movie and orders by date
    op.create_index("ix_showtimes_movie_date", "showtimes", ["movie_id", "show_date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("showtime_id", sa.Integer(), sa.ForeignKey("showtimes.id"), nullable=False),
        sa.Column("holder_token", sa.String(64), nullable=True),
        sa.Column("selected_seats", sa.JSON(), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        sa.Column("cancel_reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_booking_total_seats_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_showtime_id", "bookings", ["showtime_id"])
    op.create_index("ix_bookings_holder_token", "bookings", ["holder_token"])
    # Admin listing filters by status, newest first
    op.create_index("ix_bookings_status_created", "bookings", ["status", "created_at"])

    op.create_table(
        "showtime_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("showtime_id", sa.Integer(), sa.ForeignKey("showtimes.id"), nullable=False),
        sa.Column("seat_id", sa.String(8), nullable=False),
        sa.Column("state", sa.String(20), nullable=False, server_default="available"),
        sa.Column("holder_token", sa.String(64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("showtime_id", "seat_id", name="uq_showtime_seat"),
        sa.CheckConstraint("state IN ('available', 'held', 'booked')", name="check_seat_state"),
        sa.CheckConstraint(
            "state != 'held' OR (holder_token IS NOT NULL AND expires_at IS NOT NULL)",
            name="check_held_seat_has_token",
        ),
    )
    op.create_index("ix_showtime_seats_showtime_id", "showtime_seats", ["showtime_id"])
    # Release and confirm address seats by holder token
    op.create_index("ix_showtime_seats_holder_token", "showtime_seats", ["holder_token"])
    # The sweeper scans held seats past their expiry
    op.create_index("ix_showtime_seats_state_expiry", "showtime_seats", ["state", "expires_at"])

    op.create_table(
        "seat_holds",
        sa.Column("holder_token", sa.String(64), primary_key=True),
        sa.Column("showtime_id", sa.Integer(), sa.ForeignKey("showtimes.id"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("seat_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'confirmed', 'released', 'expired')",
            name="check_hold_status",
        ),
    )
    op.create_index("ix_seat_holds_showtime_id", "seat_holds", ["showtime_id"])
    op.create_index("ix_seat_holds_user_id", "seat_holds", ["user_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(64), nullable=True),
        sa.Column("failure_reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('success', 'failed', 'pending')", name="check_payment_status"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("seat_holds")
    op.drop_table("showtime_seats")
    op.drop_table("bookings")
    op.drop_table("showtimes")
    op.drop_table("halls")
    op.drop_table("movies")

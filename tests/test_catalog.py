"""
Tests for showtime reads, admin catalog management and ops endpoints.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from conftest import card_fields
from cinema_booking.core.clock import utcnow


@pytest.mark.asyncio
async def test_get_showtime(client: AsyncClient, showtime):
    response = await client.get(f"/api/v1/showtimes/{showtime.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["movie_title"] == "The Long Queue"
    assert data["hall_name"] == "Hall 1"
    assert data["total_seats"] == 10


@pytest.mark.asyncio
async def test_get_missing_showtime(client: AsyncClient, db_session):
    """Unknown showtime returns 404 for details and seat map."""
    assert (await client.get("/api/v1/showtimes/9999")).status_code == 404
    response = await client.get("/api/v1/showtimes/9999/seats")
    assert response.status_code == 404
    assert response.json()["code"] == "CATALOG_NOT_FOUND"


@pytest.mark.asyncio
async def test_seat_map_lists_every_seat(client: AsyncClient, showtime):
    response = await client.get(f"/api/v1/showtimes/{showtime.id}/seats")
    assert response.status_code == 200
    data = response.json()
    assert [s["seat_id"] for s in data["seats"]][:3] == ["A1", "A2", "A3"]
    assert data["available"] == 10
    assert data["held"] == 0
    assert data["booked"] == 0


@pytest.mark.asyncio
async def test_list_movie_showtimes(client: AsyncClient, showtime, past_showtime):
    """Upcoming listing hides yesterday's showtime; the full listing shows both."""
    response = await client.get(f"/api/v1/movies/{showtime.movie_id}/showtimes")
    assert response.status_code == 200
    data = response.json()
    assert [s["id"] for s in data["showtimes"]] == [showtime.id]
    assert data["cached"] is False

    response = await client.get(f"/api/v1/movies/{showtime.movie_id}/showtimes?upcoming_only=false")
    assert [s["id"] for s in response.json()["showtimes"]] == [past_showtime.id, showtime.id]


@pytest.mark.asyncio
async def test_list_showtimes_unknown_movie(client: AsyncClient, db_session):
    response = await client.get("/api/v1/movies/9999/showtimes")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(client: AsyncClient, user1_headers, db_session):
    """Patrons get 403, anonymous callers 401."""
    assert (await client.get("/api/v1/admin/dashboard", headers=user1_headers)).status_code == 403
    assert (await client.get("/api/v1/admin/dashboard")).status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient, showtime):
    response = await client.post(
        "/api/v1/holds",
        json={"showtime_id": showtime.id, "seat_ids": ["A1"]},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_creates_catalog(client: AsyncClient, admin_headers, db_session):
    """Movie, hall and showtime creation; the new showtime has a full seat map."""
    movie = await client.post(
        "/api/v1/admin/movies",
        json={"title": "Opening Night", "genre": "Comedy", "duration_minutes": 95},
        headers=admin_headers,
    )
    assert movie.status_code == 201

    hall = await client.post(
        "/api/v1/admin/halls",
        json={"name": "Hall 2", "total_seats": 12, "layout_rows": 3, "layout_columns": 5},
        headers=admin_headers,
    )
    assert hall.status_code == 201

    showtime = await client.post(
        "/api/v1/admin/showtimes",
        json={
            "movie_id": movie.json()["id"],
            "hall_id": hall.json()["id"],
            "show_date": (utcnow().date() + timedelta(days=3)).isoformat(),
            "start_time": "18:00:00",
            "end_time": "19:40:00",
            "ticket_price": "75.00",
        },
        headers=admin_headers,
    )
    assert showtime.status_code == 201
    assert showtime.json()["total_seats"] == 12

    seats = (await client.get(f"/api/v1/showtimes/{showtime.json()['id']}/seats")).json()["seats"]
    assert len(seats) == 12
    assert seats[-1]["seat_id"] == "C2"


@pytest.mark.asyncio
async def test_admin_catalog_validation(client: AsyncClient, admin_headers, hall):
    response = await client.post(
        "/api/v1/admin/halls",
        json={"name": "Tiny", "total_seats": 30, "layout_rows": 2, "layout_columns": 5},
        headers=admin_headers,
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/admin/halls",
        json={"name": "Hall 1", "total_seats": 10, "layout_rows": 2, "layout_columns": 5},
        headers=admin_headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/admin/showtimes",
        json={
            "movie_id": 9999,
            "hall_id": hall.id,
            "show_date": utcnow().date().isoformat(),
            "start_time": "18:00:00",
            "end_time": "20:00:00",
            "ticket_price": "10.00",
        },
        headers=admin_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_booking_management(client: AsyncClient, admin_headers, user1_headers, showtime):
    """Admin lists bookings with totals, sees revenue and cancels a booking."""
    hold = await client.post(
        "/api/v1/holds", json={"showtime_id": showtime.id, "seat_ids": ["A1", "A2"]}, headers=user1_headers
    )
    checkout = await client.post(
        "/api/v1/bookings/checkout",
        json={
            "holder_token": hold.json()["holder_token"],
            "payment_method": "credit_card",
            "payment_fields": card_fields(),
        },
        headers=user1_headers,
    )
    booking_id = checkout.json()["booking_id"]

    listing = (await client.get("/api/v1/admin/bookings?status=confirmed", headers=admin_headers)).json()
    assert [b["id"] for b in listing["bookings"]] == [booking_id]
    assert listing["summary"]["confirmed"] == 1
    assert Decimal(str(listing["summary"]["revenue"])) == Decimal("100000.00")

    dashboard = (await client.get("/api/v1/admin/dashboard", headers=admin_headers)).json()
    assert dashboard["total_movies"] == 1
    assert dashboard["total_showtimes"] == 1
    assert dashboard["total_bookings"] == 1
    assert Decimal(str(dashboard["total_revenue"])) == Decimal("100000.00")

    response = await client.post(f"/api/v1/admin/bookings/{booking_id}/confirm", headers=admin_headers)
    assert response.status_code == 409

    response = await client.post(f"/api/v1/admin/bookings/{booking_id}/cancel", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    listing = (await client.get("/api/v1/admin/bookings?status=confirmed", headers=admin_headers)).json()
    assert listing["bookings"] == []


@pytest.mark.asyncio
async def test_admin_cascade_delete(client: AsyncClient, admin_headers, user1_headers, showtime):
    await client.post(
        "/api/v1/holds", json={"showtime_id": showtime.id, "seat_ids": ["B1"]}, headers=user1_headers
    )

    response = await client.delete(f"/api/v1/admin/catalog/showtime/{showtime.id}", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["showtimes_deleted"] == 1
    assert data["seats_deleted"] == 10
    assert data["holds_deleted"] == 1

    assert (await client.get(f"/api/v1/showtimes/{showtime.id}")).status_code == 404

    response = await client.delete(f"/api/v1/admin/catalog/showtime/{showtime.id}", headers=admin_headers)
    assert response.status_code == 404

    response = await client.delete("/api/v1/admin/catalog/cinema/1", headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient, db_session):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == {"status": "disabled"}
    assert "X-Request-ID" in response.headers

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "seat_hold_attempts_total" in response.text

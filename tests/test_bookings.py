"""
Tests for hold, checkout and booking endpoints.
"""

import asyncio
from decimal import Decimal

import pytest
from httpx import AsyncClient

from conftest import DECLINED_CARD, auth_headers_for, card_fields


async def _hold(client: AsyncClient, headers: dict, showtime_id: int, seats: list[str]):
    return await client.post(
        "/api/v1/holds",
        json={"showtime_id": showtime_id, "seat_ids": seats},
        headers=headers,
    )


async def _checkout(client: AsyncClient, headers: dict, holder_token: str, card_number: str = None):
    fields = card_fields(card_number) if card_number else card_fields()
    return await client.post(
        "/api/v1/bookings/checkout",
        json={"holder_token": holder_token, "payment_method": "credit_card", "payment_fields": fields},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_hold_seats(client: AsyncClient, user1_headers, showtime):
    """Successful hold returns a token and shows the seats as held."""
    response = await _hold(client, user1_headers, showtime.id, ["A1", "A2"])
    assert response.status_code == 201
    data = response.json()
    assert data["seat_ids"] == ["A1", "A2"]
    assert data["status"] == "active"
    assert data["holder_token"]

    seat_map = (await client.get(f"/api/v1/showtimes/{showtime.id}/seats")).json()
    assert seat_map["held"] == 2
    assert seat_map["available"] == 8


@pytest.mark.asyncio
async def test_hold_unauthenticated(client: AsyncClient, showtime):
    """Unauthenticated hold returns 401."""
    response = await client.post("/api/v1/holds", json={"showtime_id": showtime.id, "seat_ids": ["A1"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_hold_conflict_lists_conflicting_seats(client: AsyncClient, user1_headers, user2_headers, showtime):
    """Overlapping hold returns 409 and tells the buyer which seats are gone."""
    await _hold(client, user1_headers, showtime.id, ["A1", "A2"])

    response = await _hold(client, user2_headers, showtime.id, ["A2", "A3"])
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "SEAT_UNAVAILABLE"
    assert data["conflicting_seats"] == ["A2"]


@pytest.mark.asyncio
async def test_hold_invalid_input(client: AsyncClient, user1_headers, showtime, past_showtime):
    """Empty selection is a schema error; unknown seats and started showtimes are 400."""
    response = await _hold(client, user1_headers, showtime.id, [])
    assert response.status_code == 422

    response = await _hold(client, user1_headers, showtime.id, ["Q42"])
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"

    response = await _hold(client, user1_headers, past_showtime.id, ["A1"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_release_hold(client: AsyncClient, user1_headers, user2_headers, showtime):
    """Only the holder releases; releasing again is a no-op."""
    token = (await _hold(client, user1_headers, showtime.id, ["B1"])).json()["holder_token"]

    response = await client.delete(f"/api/v1/holds/{token}", headers=user2_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/holds/{token}", headers=user1_headers)
    assert response.status_code == 200
    assert response.json()["seats_released"] == 1

    response = await client.delete(f"/api/v1/holds/{token}", headers=user1_headers)
    assert response.json()["seats_released"] == 0


@pytest.mark.asyncio
async def test_concurrent_hold_requests(client: AsyncClient, showtime):
    """Twenty users requesting the same two seats at once: exactly one hold."""
    responses = await asyncio.gather(*(
        _hold(client, auth_headers_for(f"racer-{i}"), showtime.id, ["A3", "A4"]) for i in range(20)
    ))

    codes = sorted(r.status_code for r in responses)
    assert codes.count(201) == 1
    assert codes.count(409) == 19


@pytest.mark.asyncio
async def test_checkout_confirms_booking(client: AsyncClient, user1_headers, showtime):
    """Hold two seats, pay, and the booking is confirmed at the server price."""
    token = (await _hold(client, user1_headers, showtime.id, ["A1", "A2"])).json()["holder_token"]

    response = await _checkout(client, user1_headers, token)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "success"
    assert data["selected_seats"] == ["A1", "A2"]
    assert Decimal(str(data["total_amount"])) == Decimal("100000.00")

    seat_map = (await client.get(f"/api/v1/showtimes/{showtime.id}/seats")).json()
    assert seat_map["booked"] == 2


@pytest.mark.asyncio
async def test_checkout_declined(client: AsyncClient, user1_headers, showtime):
    """Declined card returns 402 and the seats are available again."""
    token = (await _hold(client, user1_headers, showtime.id, ["A1"])).json()["holder_token"]

    response = await _checkout(client, user1_headers, token, DECLINED_CARD)
    assert response.status_code == 402
    data = response.json()
    assert data["code"] == "PAYMENT_FAILED"
    assert data["reason"] == "card_declined"

    seat_map = (await client.get(f"/api/v1/showtimes/{showtime.id}/seats")).json()
    assert seat_map["available"] == 10

    bookings = (await client.get("/api/v1/bookings", headers=user1_headers)).json()
    assert [b["status"] for b in bookings] == ["cancelled"]


@pytest.mark.asyncio
async def test_double_submit_checkout(client: AsyncClient, user1_headers, showtime, gateway):
    """Two submits of one hold while the gateway is slow: 201 for one, 409 for the other."""
    token = (await _hold(client, user1_headers, showtime.id, ["A1"])).json()["holder_token"]
    gateway.latency_ms = 200

    responses = await asyncio.gather(
        _checkout(client, user1_headers, token),
        _checkout(client, user1_headers, token),
    )

    assert sorted(r.status_code for r in responses) == [201, 409]
    rejected = next(r for r in responses if r.status_code == 409).json()
    assert rejected["code"] == "CHECKOUT_IN_PROGRESS"

    bookings = (await client.get("/api/v1/bookings", headers=user1_headers)).json()
    assert [b["status"] for b in bookings] == ["confirmed"]
    assert rejected["booking_id"] == bookings[0]["id"]


@pytest.mark.asyncio
async def test_checkout_missing_payment_fields(client: AsyncClient, user1_headers, showtime):
    token = (await _hold(client, user1_headers, showtime.id, ["A1"])).json()["holder_token"]

    response = await client.post(
        "/api/v1/bookings/checkout",
        json={"holder_token": token, "payment_method": "credit_card", "payment_fields": {"cvv": "123"}},
        headers=user1_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_checkout_other_users_hold(client: AsyncClient, user1_headers, user2_headers, showtime):
    token = (await _hold(client, user1_headers, showtime.id, ["A1"])).json()["holder_token"]

    response = await _checkout(client, user2_headers, token)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_and_get_bookings(client: AsyncClient, user1_headers, user2_headers, showtime):
    """Users see their own bookings and nobody else's."""
    token = (await _hold(client, user1_headers, showtime.id, ["B2"])).json()["holder_token"]
    booking_id = (await _checkout(client, user1_headers, token)).json()["booking_id"]

    bookings = (await client.get("/api/v1/bookings", headers=user1_headers)).json()
    assert [b["id"] for b in bookings] == [booking_id]
    assert (await client.get("/api/v1/bookings", headers=user2_headers)).json() == []

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=user1_headers)
    assert response.status_code == 200
    assert response.json()["user_id"] == "user-1"

    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=user2_headers)
    assert response.status_code == 403

    response = await client.get("/api/v1/bookings/9999", headers=user1_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, user1_headers, user2_headers, showtime):
    """Cancelled booking frees its seats; a second cancel is a 409."""
    token = (await _hold(client, user1_headers, showtime.id, ["A1", "A2"])).json()["holder_token"]
    booking_id = (await _checkout(client, user1_headers, token)).json()["booking_id"]

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=user1_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    seat_map = (await client.get(f"/api/v1/showtimes/{showtime.id}/seats")).json()
    assert seat_map["available"] == 10

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=user1_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"

    response = await _hold(client, user2_headers, showtime.id, ["A1", "A2"])
    assert response.status_code == 201

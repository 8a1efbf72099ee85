"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many buyers, few seats
  locust -f locustfile.py --tags checkout     # Hold + pay end to end
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Tokens are signed locally with the service's SECRET_KEY, so run with the same
environment as the API.
"""

import random
import uuid
from datetime import date, timedelta
from locust import HttpUser, task, between, tag, events

from cinema_booking.core.security import create_access_token

# Shared state
SHOWTIME_IDS = []
CONTENTION_SHOWTIME_ID = None
CONTENTION_SEATS = [f"A{n}" for n in range(1, 11)]

ADMIN_HEADERS = {"Authorization": f"Bearer {create_access_token({'sub': 'load-admin', 'role': 'admin'})}"}


def user_headers() -> dict:
    token = create_access_token({"sub": f"load_{uuid.uuid4().hex[:10]}"})
    return {"Authorization": f"Bearer {token}"}


def card_payment(holder_token: str) -> dict:
    return {
        "holder_token": holder_token,
        "payment_method": "credit_card",
        "payment_fields": {
            "card_number": "4242424242424242",
            "expiry_date": "12/39",
            "cvv": "123",
            "card_holder": "Load Test",
        },
    }


def create_showtime(client, seats: int) -> int | None:
    suffix = uuid.uuid4().hex[:6]
    movie = client.post("/api/v1/admin/movies", json={"title": f"Load {suffix}", "duration_minutes": 120},
                        headers=ADMIN_HEADERS)
    hall = client.post("/api/v1/admin/halls",
                       json={"name": f"Hall {suffix}", "total_seats": seats,
                             "layout_rows": (seats + 9) // 10, "layout_columns": 10},
                       headers=ADMIN_HEADERS)
    if movie.status_code != 201 or hall.status_code != 201:
        return None

    show_date = (date.today() + timedelta(days=random.randint(1, 30))).isoformat()
    resp = client.post("/api/v1/admin/showtimes",
                       json={"movie_id": movie.json()["id"], "hall_id": hall.json()["id"],
                             "show_date": show_date, "start_time": "19:00:00", "end_time": "21:00:00",
                             "ticket_price": "12.50"},
                       headers=ADMIN_HEADERS)
    return resp.json()["id"] if resp.status_code == 201 else None


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: showtimes are created lazily by the first users")
    print("=" * 60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 buyers -> 10 seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify no seat is booked twice:
      SELECT seat_id, COUNT(*) FROM showtime_seats
      WHERE showtime_id = X AND state = 'booked' GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = user_headers()
        if not CONTENTION_SHOWTIME_ID:
            showtime_id = create_showtime(self.client, 10)
            if showtime_id:
                globals()["CONTENTION_SHOWTIME_ID"] = showtime_id
                print(f"\nCreated showtime {showtime_id} with 10 seats\n")

    @tag("contention")
    @task
    def hold_overlapping_seats(self):
        """Everybody grabs two random seats of the same ten."""
        if not CONTENTION_SHOWTIME_ID:
            return

        with self.client.post("/api/v1/holds",
            json={"showtime_id": CONTENTION_SHOWTIME_ID, "seat_ids": random.sample(CONTENTION_SEATS, 2)},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
                self.client.delete(f"/api/v1/holds/{resp.json()['holder_token']}",
                                   headers=self.headers, name="/api/v1/holds/{token}")
            elif resp.status_code == 409:
                resp.success()  # Expected: seats taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class CheckoutUser(HttpUser):
    """
    TEST 2: Full purchase flow - hold, pay, occasionally cancel

    Run: locust -f locustfile.py --tags checkout -u 50 -r 10 --run-time 60s

    Set PAYMENT_GATEWAY_LATENCY_MS on the API to see that slow payments do
    not block holds on the same showtime.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = user_headers()
        if len(SHOWTIME_IDS) < 3:
            showtime_id = create_showtime(self.client, 200)
            if showtime_id:
                SHOWTIME_IDS.append(showtime_id)

    @tag("checkout")
    @task(5)
    def hold_and_pay(self):
        if not SHOWTIME_IDS:
            return
        showtime_id = random.choice(SHOWTIME_IDS)
        seat_map = self.client.get(f"/api/v1/showtimes/{showtime_id}/seats", name="/api/v1/showtimes/{id}/seats")
        if seat_map.status_code != 200:
            return
        free = [s["seat_id"] for s in seat_map.json()["seats"] if s["state"] == "available"]
        if not free:
            return

        hold = self.client.post("/api/v1/holds",
            json={"showtime_id": showtime_id, "seat_ids": random.sample(free, min(len(free), random.randint(1, 4)))},
            headers=self.headers)
        if hold.status_code != 201:
            return

        with self.client.post("/api/v1/bookings/checkout",
            json=card_payment(hold.json()["holder_token"]),
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 402, 410):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("checkout")
    @task(1)
    def cancel_latest_booking(self):
        bookings = self.client.get("/api/v1/bookings", headers=self.headers)
        if bookings.status_code != 200:
            return
        confirmed = [b for b in bookings.json() if b["status"] == "confirmed"]
        if confirmed:
            self.client.post(f"/api/v1/bookings/{confirmed[0]['id']}/cancel",
                             headers=self.headers, name="/api/v1/bookings/{id}/cancel")

    @tag("checkout")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = user_headers()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_showtime(self):
        with self.client.post("/api/v1/holds",
            json={"showtime_id": 999999, "seat_ids": ["A1"]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def empty_selection(self):
        with self.client.post("/api/v1/holds",
            json={"showtime_id": 1, "seat_ids": []},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def unknown_hold_checkout(self):
        with self.client.post("/api/v1/bookings/checkout",
            json=card_payment("not-a-real-token"),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/holds",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/holds",
            json={"showtime_id": 1, "seat_ids": ["A1"]},
            catch_response=True
        ) as resp:
            self._expect(resp, [401])

"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many sessions, same seats
  locust -f locustfile.py --tags browse       # Seat map throughput
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Set SCHEDULE_ID to a bookable trip (default 1). After a contention run,
verify no seat was sold twice:

  SELECT bs.seat_id, COUNT(*) FROM booking_seats bs
  JOIN bookings b ON b.id = bs.booking_id
  WHERE b.schedule_id = X AND b.status IN ('PENDING', 'CONFIRMED')
  GROUP BY bs.seat_id HAVING COUNT(*) > 1;

Should return no rows.
"""

import os
import random
import uuid
from locust import HttpUser, task, between, tag, events

SCHEDULE_ID = int(os.environ.get("SCHEDULE_ID", "1"))

# Seat ids of the trip, filled from the first seat map
SEAT_IDS = []


def new_session_id():
    return f"load-{uuid.uuid4().hex[:12]}"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"Load testing schedule {SCHEDULE_ID}")
    print("="*60)


def load_seat_ids(client):
    if SEAT_IDS:
        return
    resp = client.get(f"/api/v1/schedules/{SCHEDULE_ID}/seats", name="/api/v1/schedules/{id}/seats")
    if resp.status_code == 200:
        SEAT_IDS.extend(seat["id"] for seat in resp.json()["seats"])


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - every session fights for the same first four seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    Expected: 200 or 409 on lock, 201 or 409 on booking, never a double sale.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.session_id = new_session_id()
        load_seat_ids(self.client)

    @tag("contention")
    @task
    def lock_and_book(self):
        if not SEAT_IDS:
            return
        seat_ids = random.sample(SEAT_IDS[:4], k=random.randint(1, 2))

        with self.client.post("/api/v1/seats/lock",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": seat_ids, "session_id": self.session_id},
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 409, 429):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
            if resp.status_code != 200:
                return

        with self.client.post("/api/v1/bookings",
            json={
                "schedule_id": SCHEDULE_ID,
                "seat_ids": seat_ids,
                "session_id": self.session_id,
                "passenger_info": {
                    "name": "Load Tester",
                    "phone": "+15550100",
                    "email": f"{self.session_id}@example.com",
                },
            },
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409, 429):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

        # Next iteration behaves like a new shopper
        self.session_id = new_session_id()


class BrowseUser(HttpUser):
    """
    TEST 2: Seat map throughput

    Run: locust -f locustfile.py --tags browse -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("browse", "read")
    @task(10)
    def seat_map(self):
        self.client.get(f"/api/v1/schedules/{SCHEDULE_ID}/seats",
            name="/api/v1/schedules/{id}/seats")

    @tag("browse")
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

    @tag("edge")
    @task
    def unknown_schedule(self):
        with self.client.post("/api/v1/seats/lock",
            json={"schedule_id": 999999, "seat_ids": [1], "session_id": new_session_id()},
            catch_response=True
        ) as resp:
            if resp.status_code in (404, 429):
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def too_many_seats(self):
        with self.client.post("/api/v1/seats/lock",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": list(range(1, 20)), "session_id": new_session_id()},
            catch_response=True
        ) as resp:
            if resp.status_code in (400, 429):
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def booking_without_lock(self):
        with self.client.post("/api/v1/bookings",
            json={
                "schedule_id": SCHEDULE_ID,
                "seat_ids": [1],
                "session_id": new_session_id(),
                "passenger_info": {"name": "X", "phone": "1", "email": "x@example.com"},
            },
            catch_response=True
        ) as resp:
            if resp.status_code in (404, 409, 429):
                resp.success()
            else:
                resp.failure(f"Expected 409, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings",
            data="not json at all",
            catch_response=True
        ) as resp:
            if resp.status_code in (400, 422, 429):
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def confirm_real_intent(self):
        with self.client.post("/api/v1/payments/confirm",
            json={"payment_intent_id": "pi_live_not_mock"},
            catch_response=True
        ) as resp:
            if resp.status_code in (400, 429):
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

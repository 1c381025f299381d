"""
Tests for booking creation, lookup and ticket validation.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from bus_booking.main import app
from bus_booking.models import Booking, Schedule
from bus_booking.services import booking_service
from bus_booking.services.booking_service import generate_pnr
from bus_booking.services.interfaces.discount import DiscountStrategy
from bus_booking.services.payment_processors import StripePaymentProcessor
from bus_booking.services.strategy_factory import get_discount_strategy, get_payment_processor


async def lock(client: AsyncClient, trip, seat_numbers, session_id):
    response = await client.post(
        "/api/v1/seats/lock",
        json={
            "schedule_id": trip.schedule_id,
            "seat_ids": [trip.seats[n] for n in seat_numbers],
            "session_id": session_id,
        },
    )
    assert response.status_code == 200, response.text
    return response


async def book(client: AsyncClient, make_payload, trip, seat_numbers, session_id, **overrides):
    return await client.post(
        "/api/v1/bookings",
        json=make_payload(trip, seat_numbers, session_id, **overrides),
    )


def test_generate_pnr_format():
    pnr = generate_pnr()
    assert pnr.startswith("BT")
    assert pnr[2:-4].isdigit()
    assert pnr[-4:].isalnum() and pnr[-4:].upper() == pnr[-4:]
    assert 3 <= len(pnr) <= 25


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, make_payload, trip, notification_queue):
    """A locked selection becomes a PENDING booking priced per seat type."""
    await lock(client, trip, ["1A", "1C"], "session-x")

    response = await book(
        client, make_payload, trip, ["1A", "1C"], "session-x",
        passengers=[
            {"name": "Alice Traveler", "seat_id": trip.seats["1A"]},
            {"name": "Bob Traveler", "seat_id": trip.seats["1C"]},
        ],
    )
    assert response.status_code == 201, response.text
    data = response.json()

    booking = data["booking"]
    assert booking["pnr"].startswith("BT")
    assert booking["status"] == "PENDING"
    assert booking["payment_status"] == "PENDING"
    assert Decimal(booking["total_amount"]) == Decimal("65.00")
    assert Decimal(booking["discount_amount"]) == Decimal("0")

    prices = {seat["seat_number"]: Decimal(seat["price"]) for seat in data["seats"]}
    assert prices == {"1A": Decimal("40.00"), "1C": Decimal("25.00")}
    assert [p["name"] for p in data["passengers"]] == ["Alice Traveler", "Bob Traveler"]

    payment = data["payment"]
    assert payment["is_mock_payment"] is True
    assert payment["provider"] == "mock"
    assert payment["payment_intent_id"].startswith("pi_mock_")
    assert payment["client_secret"]

    # Confirmation is queued, not sent inline
    assert notification_queue.pending == 1


@pytest.mark.asyncio
async def test_booking_holds_seats_in_seat_map(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["2A"], "session-x")
    await book(client, make_payload, trip, ["2A"], "session-x")

    response = await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats")
    seat = next(s for s in response.json()["seats"] if s["seat_number"] == "2A")
    assert seat["status"] == "booked"
    assert seat["is_selectable"] is False


class CodeDiscount(DiscountStrategy):
    async def compute_discount(self, code, cart_total):
        if code == "HALF":
            return cart_total / 2
        if code == "EVERYTHING":
            return Decimal("1000.00")
        return Decimal("0")


@pytest.mark.asyncio
async def test_discount_is_applied_and_clamped(client: AsyncClient, make_payload, trip):
    app.dependency_overrides[get_discount_strategy] = lambda: CodeDiscount()

    await lock(client, trip, ["1A", "1C"], "session-x")
    response = await book(client, make_payload, trip, ["1A", "1C"], "session-x", discount_code="HALF")
    assert response.status_code == 201, response.text
    booking = response.json()["booking"]
    assert Decimal(booking["discount_amount"]) == Decimal("32.50")
    assert Decimal(booking["total_amount"]) == Decimal("32.50")

    await lock(client, trip, ["2A"], "session-y")
    response = await book(client, make_payload, trip, ["2A"], "session-y", discount_code="EVERYTHING")
    assert response.status_code == 201, response.text
    booking = response.json()["booking"]
    assert Decimal(booking["discount_amount"]) == Decimal("25.00")
    assert Decimal(booking["total_amount"]) == Decimal("0")


@pytest.mark.asyncio
async def test_booking_without_lock(client: AsyncClient, make_payload, trip):
    response = await book(client, make_payload, trip, ["1A"], "session-x")
    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "lock_expired"
    assert data["seat_ids"] == [trip.seats["1A"]]


@pytest.mark.asyncio
async def test_booking_after_lock_expired(client: AsyncClient, make_payload, trip, expire_locks):
    await lock(client, trip, ["1A", "1B"], "session-x")
    await expire_locks("session-x")

    response = await book(client, make_payload, trip, ["1A", "1B"], "session-x")
    assert response.status_code == 409
    assert response.json()["seat_ids"] == [trip.seats["1A"], trip.seats["1B"]]


@pytest.mark.asyncio
async def test_booking_seats_locked_by_someone_else(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    await lock(client, trip, ["1B"], "session-y")

    response = await book(client, make_payload, trip, ["1A", "1B"], "session-y")
    assert response.status_code == 409
    assert response.json()["seat_ids"] == [trip.seats["1A"]]


@pytest.mark.asyncio
async def test_passenger_for_unselected_seat(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    response = await book(
        client, make_payload, trip, ["1A"], "session-x",
        passengers=[{"name": "Stowaway", "seat_id": trip.seats["2D"]}],
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalid_email_rejected(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    response = await book(
        client, make_payload, trip, ["1A"], "session-x",
        passenger_info={"name": "Alice", "phone": "123", "email": "not-an-email"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_booking_departed_schedule(client: AsyncClient, make_payload, trip_factory):
    departed = await trip_factory(departs_in=-timedelta(hours=2), bus_number="BUS-OLD")
    response = await book(client, make_payload, departed, ["1A"], "session-x")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_pnr_collision_retries_with_fresh_pnr(
    client: AsyncClient, make_payload, trip, monkeypatch
):
    """A duplicate PNR is retried inside a new transaction, not surfaced."""
    pnrs = iter(["BT0000000000001DUPE", "BT0000000000001DUPE", "BT0000000000002NEW1"])
    monkeypatch.setattr(booking_service, "generate_pnr", lambda: next(pnrs))

    await lock(client, trip, ["1A"], "session-x")
    first = await book(client, make_payload, trip, ["1A"], "session-x")
    assert first.json()["booking"]["pnr"] == "BT0000000000001DUPE"

    await lock(client, trip, ["1B"], "session-y")
    second = await book(client, make_payload, trip, ["1B"], "session-y")
    assert second.status_code == 201, second.text
    assert second.json()["booking"]["pnr"] == "BT0000000000002NEW1"


@pytest.mark.asyncio
async def test_pnr_collisions_exhaust_retries(
    client: AsyncClient, make_payload, trip, session_factory, monkeypatch
):
    monkeypatch.setattr(booking_service, "generate_pnr", lambda: "BT0000000000001SAME")

    await lock(client, trip, ["1A"], "session-x")
    assert (await book(client, make_payload, trip, ["1A"], "session-x")).status_code == 201

    await lock(client, trip, ["1B"], "session-y")
    response = await book(client, make_payload, trip, ["1B"], "session-y")
    assert response.status_code == 503
    assert response.json()["retryable"] is True

    async with session_factory() as db:
        count = len((await db.execute(select(Booking))).unique().scalars().all())
    assert count == 1


@pytest.mark.asyncio
async def test_lookup_booking(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    pnr = (await book(client, make_payload, trip, ["1A"], "session-x")).json()["booking"]["pnr"]

    response = await client.get(
        "/api/v1/bookings", params={"pnr": pnr.lower(), "email": "ALICE@example.com"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["pnr"] == pnr
    assert data["origin"] == "Springfield"
    assert data["destination"] == "Shelbyville"
    assert data["bus_number"] == "BUS-001"
    assert [s["seat_number"] for s in data["seats"]] == ["1A"]
    assert len(data["payments"]) == 1
    assert data["payments"][0]["status"] == "PENDING"


@pytest.mark.asyncio
async def test_lookup_booking_wrong_email(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    pnr = (await book(client, make_payload, trip, ["1A"], "session-x")).json()["booking"]["pnr"]

    response = await client.get(
        "/api/v1/bookings", params={"pnr": pnr, "email": "mallory@example.com"}
    )
    assert response.status_code == 404
    assert response.json()["error"] == "booking_not_found"


@pytest.mark.asyncio
async def test_price_is_snapshotted(client: AsyncClient, make_payload, trip, session_factory):
    """Changing the schedule's prices never changes a booked seat's price."""
    await lock(client, trip, ["1C"], "session-x")
    created = (await book(client, make_payload, trip, ["1C"], "session-x")).json()
    intent_id = created["payment"]["payment_intent_id"]
    await client.post("/api/v1/payments/confirm", json={"payment_intent_id": intent_id})

    async with session_factory() as db:
        await db.execute(
            update(Schedule).where(Schedule.id == trip.schedule_id).values(base_price=Decimal("99.00"))
        )
        await db.commit()

    response = await client.get(
        "/api/v1/bookings", params={"pnr": created["booking"]["pnr"], "email": "alice@example.com"}
    )
    assert Decimal(response.json()["seats"][0]["price"]) == Decimal("25.00")
    assert Decimal(response.json()["total_amount"]) == Decimal("25.00")


@pytest.mark.asyncio
async def test_validate_pending_ticket(client: AsyncClient, make_payload, trip):
    await lock(client, trip, ["1A"], "session-x")
    pnr = (await book(client, make_payload, trip, ["1A"], "session-x")).json()["booking"]["pnr"]

    response = await client.get("/api/v1/bookings/validate", params={"pnr": pnr})
    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is False
    assert data["seat_numbers"] == ["1A"]
    reasons = " ".join(data["validation_reasons"])
    assert "must be CONFIRMED" in reasons
    assert "must be COMPLETED" in reasons
    # Departure is two days out, outside the boarding window
    assert "Boarding not yet allowed" in reasons


@pytest.mark.asyncio
async def test_validate_confirmed_ticket_in_boarding_window(
    client: AsyncClient, make_payload, trip_factory
):
    soon = await trip_factory(departs_in=timedelta(hours=1), bus_number="BUS-SOON")
    await lock(client, soon, ["1A"], "session-x")
    created = (await book(client, make_payload, soon, ["1A"], "session-x")).json()
    await client.post(
        "/api/v1/payments/confirm",
        json={"payment_intent_id": created["payment"]["payment_intent_id"]},
    )

    response = await client.get(
        "/api/v1/bookings/validate", params={"pnr": created["booking"]["pnr"]}
    )
    data = response.json()
    assert data["is_valid"] is True
    assert data["validation_reasons"] == []
    assert data["status"] == "CONFIRMED"


@pytest.mark.asyncio
async def test_validate_bad_pnr(client: AsyncClient):
    response = await client.get("/api/v1/bookings/validate", params={"pnr": "AB"})
    assert response.status_code == 400

    response = await client.get("/api/v1/bookings/validate", params={"pnr": "BT404NOTFOUND"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stripe_outage_is_retryable_and_keeps_locks(
    client: AsyncClient, make_payload, trip, session_factory, monkeypatch
):
    """Strict Stripe mode has no fallback; an outage surfaces as a typed 503."""

    def down(**kwargs):
        raise ConnectionError("stripe down")

    monkeypatch.setattr("stripe.PaymentIntent.create", down)
    app.dependency_overrides[get_payment_processor] = lambda: StripePaymentProcessor(
        "sk_test_key", "usd"
    )

    await lock(client, trip, ["1A"], "session-x")
    response = await book(client, make_payload, trip, ["1A"], "session-x")
    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "payment_unavailable"
    assert data["retryable"] is True

    async with session_factory() as db:
        assert (await db.execute(select(Booking))).unique().scalars().all() == []

    seat_map = await client.get(
        f"/api/v1/schedules/{trip.schedule_id}/seats", params={"session_id": "session-x"}
    )
    seat = next(s for s in seat_map.json()["seats"] if s["seat_number"] == "1A")
    assert seat["status"] == "locked"
    assert seat["held_by_session"] is True

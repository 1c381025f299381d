"""
Tests for the seat map: status derivation, pricing, rows and statistics.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from bus_booking.core.exceptions import ScheduleUnavailable
from bus_booking.services.availability_service import get_seat_map, row_of


def test_row_of():
    assert row_of("1A") == "1"
    assert row_of("10B") == "10"
    assert row_of("DRIVER") == "DRIVER"


@pytest.mark.asyncio
async def test_fresh_trip_is_fully_available(client: AsyncClient, trip):
    response = await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats")
    assert response.status_code == 200
    data = response.json()

    assert data["schedule"]["id"] == trip.schedule_id
    assert data["schedule"]["origin_code"] == "SPF"
    assert data["schedule"]["bus_number"] == "BUS-001"
    assert all(seat["status"] == "available" for seat in data["seats"])
    assert data["availability"] == {
        "total_seats": 10,
        "available_seats": 10,
        "booked_seats": 0,
        "locked_seats": 0,
        "occupancy_rate": 0.0,
    }


@pytest.mark.asyncio
async def test_prices_follow_tiers_with_base_fallback(client: AsyncClient, trip):
    data = (await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats")).json()
    prices = {seat["seat_number"]: Decimal(seat["price"]) for seat in data["seats"]}
    assert prices["1A"] == Decimal("40.00")  # PREMIUM tier
    assert prices["1C"] == Decimal("25.00")  # REGULAR, no tier
    assert prices["10A"] == Decimal("25.00")  # SLEEPER, no tier

    pricing = {p["seat_type"]: p for p in data["pricing"]}
    assert Decimal(pricing["PREMIUM"]["price"]) == Decimal("40.00")
    assert pricing["PREMIUM"]["available_count"] == 2
    assert pricing["REGULAR"]["available_count"] == 6


@pytest.mark.asyncio
async def test_rows_are_grouped_and_numerically_ordered(client: AsyncClient, trip):
    data = (await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats")).json()
    assert list(data["seat_map"]) == ["1", "2", "10"]
    assert [s["seat_number"] for s in data["seat_map"]["1"]] == ["1A", "1B", "1C", "1D"]
    assert [s["seat_number"] for s in data["seats"]][-2:] == ["10A", "10B"]


@pytest.mark.asyncio
async def test_locked_seats_and_own_session(client: AsyncClient, trip):
    await client.post(
        "/api/v1/seats/lock",
        json={"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["2C"]], "session_id": "mine"},
    )
    await client.post(
        "/api/v1/seats/lock",
        json={"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["2D"]], "session_id": "theirs"},
    )

    data = (
        await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats", params={"session_id": "mine"})
    ).json()
    seats = {seat["seat_number"]: seat for seat in data["seats"]}

    assert seats["2C"]["status"] == "locked"
    assert seats["2C"]["held_by_session"] is True
    assert seats["2C"]["lock_expires_at"] is not None
    assert seats["2C"]["is_selectable"] is False

    assert seats["2D"]["status"] == "locked"
    assert seats["2D"]["held_by_session"] is False
    assert "session_id" not in seats["2D"]

    assert data["availability"]["locked_seats"] == 2
    assert data["availability"]["occupancy_rate"] == 20.0


@pytest.mark.asyncio
async def test_expired_locks_are_swept(client: AsyncClient, trip, expire_locks):
    await client.post(
        "/api/v1/seats/lock",
        json={"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["1A"]], "session_id": "gone"},
    )
    await expire_locks("gone")

    data = (await client.get(f"/api/v1/schedules/{trip.schedule_id}/seats")).json()
    seat = next(s for s in data["seats"] if s["seat_number"] == "1A")
    assert seat["status"] == "available"
    assert seat["lock_expires_at"] is None


@pytest.mark.asyncio
async def test_unavailable_seat(client: AsyncClient, trip_factory):
    broken = await trip_factory(unavailable_seats=("2B",), bus_number="BUS-FIX")
    data = (await client.get(f"/api/v1/schedules/{broken.schedule_id}/seats")).json()
    seat = next(s for s in data["seats"] if s["seat_number"] == "2B")
    assert seat["status"] == "unavailable"
    assert seat["is_selectable"] is False


@pytest.mark.asyncio
async def test_inactive_schedule(client: AsyncClient, trip_factory):
    inactive = await trip_factory(is_active=False, bus_number="BUS-OFF")
    response = await client.get(f"/api/v1/schedules/{inactive.schedule_id}/seats")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_schedule_raises(session_factory):
    async with session_factory() as db:
        with pytest.raises(ScheduleUnavailable):
            await get_seat_map(db, 424242)

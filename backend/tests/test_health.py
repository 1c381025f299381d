"""
Tests for operational endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["redis"] == {"status": "disabled"}
    assert "notifications" in data


@pytest.mark.asyncio
async def test_metrics_exposes_booking_counters(client: AsyncClient, trip):
    await client.post(
        "/api/v1/seats/lock",
        json={"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["1A"]], "session_id": "s1"},
    )
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "seat_lock_attempts_total" in response.text
    assert "booking_attempts_total" in response.text


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"

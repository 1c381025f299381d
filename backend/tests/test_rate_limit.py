"""
Tests for the Redis fixed-window rate limiter.
"""

import pytest
from httpx import AsyncClient

from bus_booking.main import app
from bus_booking.services.rate_limit_service import RateLimiter
from bus_booking.services.strategy_factory import get_rate_limiter


class FakeRedis:
    """Just enough of redis.asyncio.Redis for INCR + EXPIRE counters."""

    def __init__(self):
        self.counters: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True


class BrokenRedis:
    async def incr(self, key: str) -> int:
        raise ConnectionError("redis went away")


def limiter_with(redis, clock=lambda: 1_000_000.0, limits=None) -> RateLimiter:
    async def getter():
        return redis

    return RateLimiter(
        redis_getter=getter,
        window_seconds=60,
        limits=limits or {"seat_lock": 3, "default": 100},
        clock=clock,
    )


@pytest.mark.asyncio
async def test_allows_until_limit_then_blocks():
    redis = FakeRedis()
    limiter = limiter_with(redis)

    decisions = [await limiter.hit("seat_lock", "10.0.0.1") for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]

    blocked = decisions[-1]
    assert blocked.headers()["Retry-After"] == str(blocked.reset_in)
    assert "Retry-After" not in decisions[0].headers()


@pytest.mark.asyncio
async def test_window_ttl_set_on_first_hit_only():
    redis = FakeRedis()
    limiter = limiter_with(redis)
    await limiter.hit("seat_lock", "10.0.0.1")
    await limiter.hit("seat_lock", "10.0.0.1")

    (key,) = redis.counters
    assert key.startswith("ratelimit:seat_lock:10.0.0.1:")
    assert redis.ttls == {key: 60}


@pytest.mark.asyncio
async def test_identities_and_endpoints_are_counted_separately():
    redis = FakeRedis()
    limiter = limiter_with(redis)
    for _ in range(3):
        await limiter.hit("seat_lock", "10.0.0.1")

    assert (await limiter.hit("seat_lock", "10.0.0.2")).allowed
    assert (await limiter.hit("bookings", "10.0.0.1")).allowed
    assert limiter.limit_for("bookings") == 100


@pytest.mark.asyncio
async def test_new_window_resets_count():
    redis = FakeRedis()
    now = [1_000_000.0]
    limiter = limiter_with(redis, clock=lambda: now[0])
    for _ in range(4):
        await limiter.hit("seat_lock", "10.0.0.1")

    now[0] += 60
    assert (await limiter.hit("seat_lock", "10.0.0.1")).allowed


@pytest.mark.asyncio
async def test_fails_open_without_redis():
    limiter = limiter_with(None)
    decisions = [await limiter.hit("seat_lock", "10.0.0.1") for _ in range(10)]
    assert all(d.allowed for d in decisions)


@pytest.mark.asyncio
async def test_fails_open_on_redis_error():
    limiter = limiter_with(BrokenRedis())
    assert (await limiter.hit("seat_lock", "10.0.0.1")).allowed


@pytest.mark.asyncio
async def test_endpoint_returns_429(client: AsyncClient, trip):
    limiter = limiter_with(FakeRedis(), limits={"seat_lock": 1, "default": 100})
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    body = {"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["1A"]], "session_id": "s1"}
    first = await client.post("/api/v1/seats/lock", json=body)
    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "1"
    assert first.headers["X-RateLimit-Remaining"] == "0"

    second = await client.post("/api/v1/seats/lock", json=body)
    assert second.status_code == 429
    assert "Retry-After" in second.headers


@pytest.mark.asyncio
async def test_forwarded_for_identifies_client(client: AsyncClient, trip):
    redis = FakeRedis()
    app.dependency_overrides[get_rate_limiter] = lambda: limiter_with(redis)

    body = {"schedule_id": trip.schedule_id, "seat_ids": [trip.seats["1A"]], "session_id": "s1"}
    await client.post(
        "/api/v1/seats/lock", json=body, headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    )
    (key,) = redis.counters
    assert key.startswith("ratelimit:seat_lock:203.0.113.7:")

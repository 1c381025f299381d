"""
Fixed-window rate limiting backed by Redis.

RATE LIMITING STRATEGY
======================

Counters live in Redis, not in process memory, so every API worker shares
the same view of a client's request rate.

  key = "ratelimit:{endpoint}:{identity}:{window_index}"
  window_index = floor(now / window_seconds)

Each request INCRs its key; the first hit in a window sets a TTL equal to
the window so stale keys disappear on their own. A request is rejected once
the counter exceeds the endpoint's limit.

Like the rest of our Redis usage this fails open: with Redis disabled or
erroring, every request is allowed. Rate limiting protects capacity; it is
not part of seat exclusivity, which the database enforces.
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from bus_booking.core.config import get_settings
from bus_booking.core.logging import get_logger
from bus_booking.core.metrics import record_rate_limit, redis_connection_errors
from bus_booking.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_in: int  # seconds until the current window ends

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in)
        return headers


class RateLimiter:
    def __init__(
        self,
        redis_getter: Callable[[], Awaitable] = get_redis,
        window_seconds: Optional[int] = None,
        limits: Optional[dict[str, int]] = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self._redis_getter = redis_getter
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self.limits = limits or settings.RATE_LIMITS
        self._clock = clock

    def limit_for(self, endpoint: str) -> int:
        return self.limits.get(endpoint, self.limits.get("default", 100))

    async def hit(self, endpoint: str, identity: str) -> RateLimitDecision:
        limit = self.limit_for(endpoint)
        now = self._clock()
        window_index = int(now // self.window_seconds)
        reset_in = max(1, int((window_index + 1) * self.window_seconds - now))
        allow_all = RateLimitDecision(allowed=True, limit=limit, remaining=limit, reset_in=reset_in)

        client = await self._redis_getter()
        if client is None:
            return allow_all

        key = f"ratelimit:{endpoint}:{identity}:{window_index}"
        try:
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, self.window_seconds)
        except Exception as e:
            # Fail open: Redis is advisory
            redis_connection_errors.inc()
            logger.error("rate_limit_redis_error", endpoint=endpoint, error=str(e))
            return allow_all

        allowed = count <= limit
        record_rate_limit(endpoint, allowed)
        if not allowed:
            logger.warning("rate_limited", endpoint=endpoint, identity=identity, count=count, limit=limit)

        return RateLimitDecision(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_in=reset_in,
        )

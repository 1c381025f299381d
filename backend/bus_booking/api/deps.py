"""
Shared route dependencies.
"""

from fastapi import Depends, HTTPException, Request, Response, status

from bus_booking.core.config import get_settings
from bus_booking.services.rate_limit_service import RateLimiter
from bus_booking.services.strategy_factory import get_rate_limiter


def client_identity(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def rate_limited(endpoint: str):
    """
    Dependency factory enforcing the per-identity limit for `endpoint`.

    Usage:
        @router.post("/lock", dependencies=[Depends(rate_limited("seat_lock"))])
    """

    async def dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        if not get_settings().RATE_LIMIT_ENABLED:
            return
        decision = await limiter.hit(endpoint, client_identity(request))
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please slow down",
                headers=decision.headers(),
            )
        response.headers.update(decision.headers())

    return dependency

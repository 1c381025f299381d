"""
Bus Booking API - Main Application Entry Point

Seat reservation for scheduled bus trips:
- Session-scoped seat locks with passive expiry
- Bookings re-validated against locks inside one transaction
- Stripe payments (mock fallback) confirmed by client or webhook
- Structured logging with request correlation, Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bus_booking.core.config import get_settings
from bus_booking.core.exceptions import BookingError
from bus_booking.core.logging import setup_logging, get_logger
from bus_booking.core.metrics import metrics_endpoint
from bus_booking.api.router import api_router
from bus_booking.api.middleware import RequestLoggingMiddleware
from bus_booking.infrastructure.redis_client import get_redis, close_redis, get_redis_status
from bus_booking.services.strategy_factory import get_notification_queue, get_payment_processor

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        payment_processor=get_payment_processor().name,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Rate limiting disabled (fail open)")

    notifications = get_notification_queue()
    notifications.start()

    yield

    await notifications.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Bus seat booking API with concurrency-safe seat locks",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error("booking_error", code=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Internal server error", "retryable": False},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "redis": await get_redis_status(),
        "notifications": {
            "worker_running": get_notification_queue().running,
            "pending": get_notification_queue().pending,
        },
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }

"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Seat lock metrics
seat_lock_attempts = Counter(
    'seat_lock_attempts_total',
    'Seat lock acquisition attempts',
    ['result']  # acquired, conflict, error
)

seat_locks_swept = Counter(
    'seat_locks_swept_total',
    'Expired seat locks deleted by the passive sweep'
)

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, lock_expired, conflict, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

pnr_collisions = Counter(
    'booking_pnr_collisions_total',
    'PNR unique constraint collisions that triggered a retry'
)

# Payment metrics
payment_intents = Counter(
    'payment_intents_total',
    'Payment intents created',
    ['provider']  # stripe, mock
)

payment_fallbacks = Counter(
    'payment_processor_fallbacks_total',
    'Payment intent creations that fell back to the mock processor'
)

payment_events = Counter(
    'payment_events_total',
    'Payment confirmation outcomes',
    ['outcome']  # confirmed, cancelled, duplicate, ignored, unknown
)

# Rate limiting metrics
rate_limit_decisions = Counter(
    'rate_limit_decisions_total',
    'Rate limiter decisions',
    ['endpoint', 'result']  # allowed, limited
)

# Notification metrics
notification_deliveries = Counter(
    'notification_deliveries_total',
    'Booking confirmation notification deliveries',
    ['result']  # sent, retried, failed, dropped
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_lock_attempt(result: str):
    """Record seat lock attempt. Result: acquired, conflict, error"""
    seat_lock_attempts.labels(result=result).inc()


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, lock_expired, conflict, error"""
    booking_attempts.labels(status=status).inc()


def record_payment_event(outcome: str):
    payment_events.labels(outcome=outcome).inc()


def record_rate_limit(endpoint: str, allowed: bool):
    result = "allowed" if allowed else "limited"
    rate_limit_decisions.labels(endpoint=endpoint, result=result).inc()


def record_notification(result: str):
    notification_deliveries.labels(result=result).inc()

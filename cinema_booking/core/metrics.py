"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Seat inventory metrics
hold_attempts = Counter(
    'seat_hold_attempts_total',
    'Total seat hold attempts',
    ['result']  # held, unavailable, invalid
)

seats_reclaimed = Counter(
    'seat_holds_reclaimed_total',
    'Held seats returned to available after their hold expired'
)

# Checkout metrics
checkout_outcomes = Counter(
    'checkout_outcomes_total',
    'Checkout attempts by outcome',
    ['outcome']  # confirmed, declined, gateway_error, hold_expired
)

gateway_latency = Histogram(
    'payment_gateway_latency_seconds',
    'Payment gateway charge latency',
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Booking ledger metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking state transitions',
    ['to_status']  # confirmed, cancelled
)

# Admin metrics
cascade_deletes = Counter(
    'cascade_deletes_total',
    'Admin cascade deletes',
    ['entity_type', 'result']  # ok, conflict
)

# HTTP metrics
http_requests = Counter(
    'http_requests_total',
    'HTTP requests by route and status',
    ['method', 'route', 'status_code']
)

http_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'route'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Requests currently being served'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_hold_attempt(result: str):
    """Record hold attempt. Result: held, unavailable, invalid"""
    hold_attempts.labels(result=result).inc()


def record_checkout(outcome: str):
    checkout_outcomes.labels(outcome=outcome).inc()


def record_transition(to_status: str):
    booking_transitions.labels(to_status=to_status).inc()


def record_cascade(entity_type: str, ok: bool):
    cascade_deletes.labels(entity_type=entity_type, result="ok" if ok else "conflict").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_request(method: str, route: str, status_code: int, duration_seconds: float):
    http_requests.labels(method=method, route=route, status_code=str(status_code)).inc()
    http_latency.labels(method=method, route=route).observe(duration_seconds)

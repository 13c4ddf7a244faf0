"""
Prometheus metrics for Keygate.

Defines request and session lifecycle metrics on the default
prometheus_client registry, plus the middleware that times requests.
"""

import time

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.routing import Match

REQUEST_DURATION_BUCKETS = (0.1, 0.5, 1, 1.5)

http_requests = Counter(
    "keygate_http_requests_total",
    "HTTP requests handled",
    ["method", "path", "status"],
)

http_request_duration = Histogram(
    "keygate_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=REQUEST_DURATION_BUCKETS,
)

sessions_created = Counter(
    "keygate_sessions_created_total",
    "Sessions issued in exchange for a token",
)

session_validations = Counter(
    "keygate_session_validations_total",
    "Session validation attempts",
    ["result"],
)

sessions_expired = Counter(
    "keygate_sessions_expired_total",
    "Expired sessions removed, either on access or by the background sweep",
)


def record_expired(count: int) -> None:
    sessions_expired.inc(count)


def route_label(request: Request) -> str:
    """Route template for the request, so unknown paths don't blow up label cardinality."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", "unmatched")
    return "unmatched"


class MetricsMiddleware:
    """Times every request and counts it by method, route and status."""

    async def __call__(self, request: Request, call_next):
        method = request.method
        path = route_label(request)
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            http_request_duration.labels(method=method, path=path).observe(
                time.perf_counter() - start
            )
            http_requests.labels(method=method, path=path, status=str(status)).inc()


def metrics_response() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

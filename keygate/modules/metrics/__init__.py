"""
Metrics Module - Black Box Interface

Purpose: Expose Prometheus metrics for requests and session lifecycle
Interface: MetricsMiddleware, metrics_response(), record_expired(), metric objects
Hidden: Registry, label naming, route resolution
"""

from .metrics import (
    REQUEST_DURATION_BUCKETS,
    MetricsMiddleware,
    http_request_duration,
    http_requests,
    metrics_response,
    record_expired,
    route_label,
    session_validations,
    sessions_created,
    sessions_expired,
)

__all__ = [
    "REQUEST_DURATION_BUCKETS",
    "MetricsMiddleware",
    "http_request_duration",
    "http_requests",
    "metrics_response",
    "record_expired",
    "route_label",
    "session_validations",
    "sessions_created",
    "sessions_expired",
]

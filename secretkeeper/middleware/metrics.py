"""Prometheus metrics middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0]
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method"]
)

auth_attempts_total = Counter(
    "auth_attempts_total",
    "Login and registration attempts",
    ["method", "outcome"]  # method: password/register/google/facebook
)

secrets_submitted_total = Counter(
    "secrets_submitted_total",
    "Secrets appended by authenticated users"
)


def endpoint_label(request: Request) -> str:
    """Route template (e.g. /auth/{provider}) so label cardinality stays bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware:
    """Middleware to collect Prometheus metrics."""

    async def __call__(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        # Skip metrics for /metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method

        http_requests_in_progress.labels(method=method).inc()
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.time() - start_time
            endpoint = endpoint_label(request)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_in_progress.labels(method=method).dec()

        return response


def get_metrics() -> Response:
    """
    Get Prometheus metrics.

    Returns:
        Response with metrics in Prometheus format
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def track_auth_attempt(method: str, outcome: str):
    """Track a login/registration outcome ("success" or "failure")."""
    auth_attempts_total.labels(method=method, outcome=outcome).inc()


def track_secret_submitted():
    secrets_submitted_total.inc()

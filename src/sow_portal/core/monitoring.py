"""Prometheus metrics for the BFF, the backend REST client, and generation tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- record_backend_call(): counter/histogram update for SOW backend calls
- record_generation_outcome(): which channel (poll or push) completed a run
- get_metrics_response(): FastAPI route handler body for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "sow_portal_http_requests_total",
    "Total HTTP requests served by the BFF",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "sow_portal_http_request_duration_seconds",
    "BFF HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Backend API Metrics ──────────────────────────────────────────────────────

backend_requests_total = Counter(
    "sow_portal_backend_requests_total",
    "Total requests made to the SOW backend API",
    ["method", "outcome"],
)

backend_request_duration_seconds = Histogram(
    "sow_portal_backend_request_duration_seconds",
    "SOW backend request duration in seconds",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Generation Metrics ───────────────────────────────────────────────────────

generation_outcomes_total = Counter(
    "sow_portal_generation_outcomes_total",
    "Generation runs observed to completion, by kind, result and winning channel",
    ["kind", "result", "channel"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Helpers ──────────────────────────────────────────────────────────────────


def record_backend_call(method: str, outcome: str, duration: float) -> None:
    """Record one SOW backend request.

    Args:
        method: HTTP method of the request.
        outcome: "success", "client_error", "server_error" or "network_error".
        duration: Wall-clock seconds including any automatic retry.
    """
    backend_requests_total.labels(method=method, outcome=outcome).inc()
    backend_request_duration_seconds.labels(method=method).observe(duration)


def record_generation_outcome(kind: str, succeeded: bool, channel: str) -> None:
    """Record which channel completed a generation run."""
    generation_outcomes_total.labels(
        kind=kind,
        result="succeeded" if succeeded else "failed",
        channel=channel,
    ).inc()


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )

"""
Prometheus metrics for CarHaus.

Provides:
- HTTP request count and latency by endpoint
- Inquiry thread activity (new threads vs. follow-ups)
- Featured placement transitions and cap rejections
- Realtime connection and push-failure tracking

Usage:
    from carhaus.core.metrics import track_inquiry

    track_inquiry(follow_up=True)
"""

import time
import uuid
from collections.abc import Callable
from contextlib import suppress
from typing import Any

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from carhaus.core.config import settings

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("carhaus_app", "CarHaus application information")
APP_INFO.info(
    {
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
        "service": settings.PROJECT_NAME,
    }
)

# =============================================================================
# HTTP Request Metrics
# =============================================================================

REQUEST_COUNT = Counter(
    "carhaus_http_requests_total",
    "Total HTTP request count",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "carhaus_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

REQUEST_IN_PROGRESS = Gauge(
    "carhaus_http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
)

EXCEPTION_COUNT = Counter(
    "carhaus_exceptions_total",
    "Total unhandled exceptions",
    ["exception_type", "endpoint"],
)

# =============================================================================
# Marketplace Metrics
# =============================================================================

INQUIRY_COUNT = Counter(
    "carhaus_inquiries_total",
    "Inquiry submissions by outcome",
    ["kind"],
)

FEATURED_TRANSITIONS = Counter(
    "carhaus_featured_transitions_total",
    "Featured placement changes",
    ["action"],
)

FEATURED_REJECTIONS = Counter(
    "carhaus_featured_rejections_total",
    "Featured requests rejected by a cap",
    ["scope"],
)

SUBSCRIPTION_CHANGES = Counter(
    "carhaus_subscription_changes_total",
    "Subscription lifecycle events",
    ["action", "plan"],
)

REALTIME_CONNECTIONS = Gauge(
    "carhaus_realtime_connections",
    "Open realtime sockets",
)

REALTIME_PUSH_FAILURES = Counter(
    "carhaus_realtime_push_failures_total",
    "Realtime events that could not be delivered",
    ["event"],
)


def track_inquiry(follow_up: bool) -> None:
    """Count an inquiry submission."""
    INQUIRY_COUNT.labels(kind="follow_up" if follow_up else "new").inc()


def track_featured_transition(action: str) -> None:
    """Count a featured placement change (feature, unfeature, reorder)."""
    FEATURED_TRANSITIONS.labels(action=action).inc()


def track_featured_rejection(scope: str) -> None:
    FEATURED_REJECTIONS.labels(scope=scope).inc()


def track_subscription_change(action: str, plan: str) -> None:
    SUBSCRIPTION_CHANGES.labels(action=action, plan=plan).inc()


def track_push_failure(event: str) -> None:
    REALTIME_PUSH_FAILURES.labels(event=event).inc()


def set_realtime_connections(count: int) -> None:
    REALTIME_CONNECTIONS.set(count)


# =============================================================================
# Metrics Middleware
# =============================================================================


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware for automatic request metrics collection.

    Tracks request count by method, endpoint and status, request latency,
    and requests in progress.
    """

    # Endpoints excluded to keep cardinality low
    EXCLUDED_ENDPOINTS = {"/health", "/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = self._normalize_endpoint(request.url.path)

        if endpoint in self.EXCLUDED_ENDPOINTS:
            return await call_next(request)

        method = request.method
        REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as e:
            EXCEPTION_COUNT.labels(exception_type=type(e).__name__, endpoint=endpoint).inc()
            raise
        finally:
            REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()
            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code),
            ).inc()
            REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)

    def _normalize_endpoint(self, path: str) -> str:
        """Replace UUID and numeric path segments with ``{id}``."""
        normalized_parts = []
        for part in path.split("/"):
            if not part:
                continue
            if self._is_uuid(part) or part.isdigit():
                normalized_parts.append("{id}")
            else:
                normalized_parts.append(part)
        return "/" + "/".join(normalized_parts) if normalized_parts else "/"

    @staticmethod
    def _is_uuid(value: str) -> bool:
        with suppress(ValueError, AttributeError):
            uuid.UUID(value)
            return True
        return False


# =============================================================================
# Metrics Export
# =============================================================================


def generate_metrics_response() -> Response:
    """Render all registered metrics in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def get_metrics_summary() -> dict[str, Any]:
    """Human-readable snapshot of the marketplace counters."""
    return {
        "service": settings.PROJECT_NAME,
        "environment": settings.ENVIRONMENT,
        "realtime_connections": REALTIME_CONNECTIONS._value.get(),
    }

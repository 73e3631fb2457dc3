"""
Prometheus metrics and instrumentation helpers.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


HTTP_REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total count of HTTP requests processed.",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "app_http_request_duration_seconds",
    "Histogram of HTTP request durations in seconds.",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

HTTP_REQUEST_ERRORS = Counter(
    "app_http_request_errors_total",
    "Count of HTTP requests resulting in error responses.",
    ["method", "path", "status"],
)

PROPERTY_QUERIES = Counter(
    "app_property_queries_total",
    "Property list queries partitioned by mode (bounds or search).",
    ["mode"],
)

PROPERTY_QUERY_ROWS = Histogram(
    "app_property_query_rows",
    "Rows returned per property list query.",
    buckets=(0, 10, 50, 100, 250, 500, 1000),
)

PROPERTY_UPDATES = Counter(
    "app_property_updates_total",
    "Response/remark updates partitioned by outcome.",
    ["outcome"],
)

STATE_OPERATIONS = Counter(
    "app_state_operations_total",
    "UI state store operations partitioned by outcome.",
    ["operation"],
)

EXTERNAL_API_RETRIES = Counter(
    "app_external_api_retries_total",
    "Retries issued when calling external APIs.",
    ["service"],
)


def _normalise_path(request: Request, root_path: str = "") -> str:
    """
    Prefer route path templates to reduce cardinality in metrics.

    Routes served through an included router may carry a template relative to
    the prefix that matched them. That prefix is whatever the routing layer
    appended to ``root_path`` after the request entered the app, so it is put
    back in front of the template.
    """
    route = request.scope.get("route")
    template = getattr(route, "path_format", getattr(route, "path", None))
    if template is None:
        return request.url.path
    mount_prefix = request.scope.get("root_path", "")
    if mount_prefix.startswith(root_path):
        mount_prefix = mount_prefix[len(root_path):]
    return (mount_prefix.rstrip("/") + template) or "/"


def observe_http_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record metrics for an HTTP request."""
    status_str = str(status_code)
    HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status_str).inc()
    HTTP_REQUEST_DURATION.labels(method=method, path=path).observe(duration)

    if status_code >= 400:
        HTTP_REQUEST_ERRORS.labels(method=method, path=path, status=status_str).inc()


def record_property_query(mode: str, row_count: int) -> None:
    """Count a list query and the size of its result."""
    PROPERTY_QUERIES.labels(mode=mode).inc()
    PROPERTY_QUERY_ROWS.observe(row_count)


def record_property_update(outcome: str) -> None:
    """Increment update counters."""
    PROPERTY_UPDATES.labels(outcome=outcome).inc()


def record_state_operation(operation: str) -> None:
    """Increment state store operation counters."""
    STATE_OPERATIONS.labels(operation=operation).inc()


def record_external_api_retry(service: str) -> None:
    """Increment retry counter for an external service."""
    EXTERNAL_API_RETRIES.labels(service=service).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for capturing request metrics."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        method = request.method
        root_path = request.scope.get("root_path", "")
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            observe_http_request(method, _normalise_path(request, root_path), 500, duration)
            raise

        duration = time.perf_counter() - start
        observe_http_request(method, _normalise_path(request, root_path), response.status_code, duration)
        return response


__all__ = [
    "MetricsMiddleware",
    "HTTP_REQUESTS_TOTAL",
    "HTTP_REQUEST_DURATION",
    "HTTP_REQUEST_ERRORS",
    "PROPERTY_QUERIES",
    "PROPERTY_QUERY_ROWS",
    "PROPERTY_UPDATES",
    "STATE_OPERATIONS",
    "EXTERNAL_API_RETRIES",
    "observe_http_request",
    "record_property_query",
    "record_property_update",
    "record_state_operation",
    "record_external_api_retry",
]

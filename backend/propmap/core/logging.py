"""
JSON logging for the map service.

Every record carries the id and user agent of the request that produced it,
plus the service name and environment, so one request can be followed across
the endpoint, the property service and the database layer.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

from fastapi import Request
from pythonjsonlogger import jsonlogger
from starlette.middleware.base import BaseHTTPMiddleware

from propmap.core.config import settings

SERVICE_NAME = "propid-map"

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
user_agent_ctx: ContextVar[str] = ContextVar("user_agent", default="-")

access_logger = logging.getLogger("propmap.access")

# Health checks and scrapes would drown the access log.
UNLOGGED_PATHS = ("/health", "/metrics", f"{settings.API_V1_PREFIX}/health")

QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "uvicorn.access")

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "%(request_id)s %(user_agent)s %(lineno)d"
)


class RequestContextFilter(logging.Filter):
    """Stamp the current request's id and user agent on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        record.user_agent = user_agent_ctx.get()
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind the request id for the duration of a request and log its outcome."""

    async def dispatch(self, request: Request, call_next) -> Any:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        tokens = (
            request_id_ctx.set(request_id),
            user_agent_ctx.set(request.headers.get("user-agent", "unknown")),
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            if not request.url.path.startswith(UNLOGGED_PATHS):
                access_logger.info(
                    "request_completed",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "status": response.status_code,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 1),
                    },
                )
            return response
        finally:
            request_id_ctx.reset(tokens[0])
            user_agent_ctx.reset(tokens[1])


def build_formatter() -> jsonlogger.JsonFormatter:
    return jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        static_fields={"service": SERVICE_NAME, "environment": settings.ENVIRONMENT},
    )


def setup_logging(level: Optional[str] = None) -> None:
    """Route every logger, uvicorn's included, through one JSON handler on stdout."""
    resolved = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved)

    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
        uvicorn_logger.setLevel(resolved)

    # request_completed replaces uvicorn's own access lines.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = [
    "RequestContextMiddleware",
    "RequestContextFilter",
    "build_formatter",
    "setup_logging",
    "request_id_ctx",
    "user_agent_ctx",
]

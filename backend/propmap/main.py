"""
PropID Map - Main Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from propmap.core.config import settings
from propmap.core.database import DRIVER_CONNECTION_ERRORS, init_db, is_connection_failure
from propmap.api.v1.router import api_router
from propmap.core.logging import SERVICE_NAME, RequestContextMiddleware, setup_logging
from propmap.core.metrics import MetricsMiddleware
from propmap.core.rate_limiter import RateLimitMiddleware, limiter, rate_limit_handler
from propmap.core.redis import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown."""
    # Startup
    setup_logging()
    await init_db()
    yield
    # Shutdown
    await close_redis()


app = FastAPI(
    title="PropID Map",
    description="Government property map: viewport listing, search and contact outcomes",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)
app.state.limiter = limiter


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"error": "Invalid request", "details": jsonable_errors(exc)},
        status_code=400,
    )


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "database_connection_failed",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse({"error": "Database connection failed"}, status_code=500)


async def database_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    if is_connection_failure(exc):
        return await database_unavailable_handler(request, exc)
    logger.error(
        "database_query_failed",
        extra={"path": request.url.path, "error": str(exc.orig)},
    )
    return JSONResponse({"error": "Database query failed"}, status_code=500)


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(DBAPIError, database_error_handler)
for error_type in DRIVER_CONNECTION_ERRORS:
    app.add_exception_handler(error_type, database_unavailable_handler)

# Middleware (last added runs first)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Mount Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": SERVICE_NAME}


@app.get("/")
async def root():
    """Root endpoint with system information."""
    return {
        "service": "PropID Map",
        "version": "1.0.0",
        "docs": "/api/docs",
        "health": "/health",
        "metrics": "/metrics",
        "properties": f"{settings.API_V1_PREFIX}/properties",
    }

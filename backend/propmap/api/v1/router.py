"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from propmap.api.v1.endpoints import health_router, properties_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(properties_router, prefix="/properties", tags=["properties"])

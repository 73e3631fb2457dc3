"""
Application configuration using Pydantic Settings.
"""

from typing import List
from pydantic import PostgresDsn, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="allow"
    )

    # Environment
    ENVIRONMENT: str = "development"
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DATABASE_URL: PostgresDsn
    PROPERTY_QUERY_LIMIT: int = 1000

    # Redis (readiness + UI state store)
    REDIS_URL: RedisDsn
    STATE_KEY_PREFIX: str = "propid-"

    # CORS - the map client is served from arbitrary origins
    CORS_ORIGINS: List[str] = ["*"]

    # Rate limiting
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Property API client
    PROPERTY_API_URL: str = "http://localhost:8000/api/v1/properties"
    PROPERTY_API_TIMEOUT: float = 30.0
    PROPERTY_API_MAX_ATTEMPTS: int = 3
    PROPERTY_API_RETRY_BACKOFF: float = 0.5

    # Map fetch policy
    MIN_ZOOM_LEVEL: int = 18
    SIZE_FILTER_ZOOM_OFFSET: int = 2
    SIZE_FILTER_ZOOM_FLOOR: int = 16
    BOUNDS_EPSILON: float = 0.001

    # Observability
    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v


settings = Settings()

# deckshare/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
"""

import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Database ---
    DB_URL: str = Field(
        default="postgresql://localhost:5432/deckshare",
        description="PostgreSQL connection URL"
    )

    # --- Redis ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (cache and job queue)"
    )

    # --- Server ---
    HOST: str = Field(default="127.0.0.1", description="Server bind host")
    PORT: int = Field(default=8888, description="Server bind port")
    SITE_URL: str = Field(
        default="http://127.0.0.1:8888",
        description="Public base URL, used for render and short URLs"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # --- Rendering ---
    IMAGE_VERSION: str = Field(
        default="2.1",
        description="Tag of the current rendering algorithm; older images are stale"
    )
    USE_URLBOX_RENDER: bool = Field(
        default=False,
        description="Race the urlbox screenshot service against the internal renderer"
    )
    URLBOX_API_KEY: str = Field(default="", description="urlbox public API key")
    RENDER_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    RENDER_CANCEL_LOSERS: bool = Field(
        default=False,
        description="Cancel backend requests that lost the render race"
    )
    BREAKER_FAILURE_THRESHOLD: int = Field(default=5, ge=1)
    BREAKER_RECOVERY_TIMEOUT: float = Field(default=30.0, ge=0)
    STALE_RENDER_MINUTES: int = Field(
        default=10, ge=1,
        description="Render flags older than this are released by the worker"
    )

    # --- Image polling ---
    POLL_MAX_ATTEMPTS: int = Field(default=10, ge=1)
    POLL_INTERVAL_MS: int = Field(default=500, ge=0)

    # --- Short identifiers ---
    SHORTID_BATCH_SIZE: int = Field(default=15, ge=1)
    SHORTID_INITIAL_LENGTH: int = Field(default=3, ge=1)
    SHORTID_MAX_LENGTH: int = Field(default=12, ge=1)

    # --- Views ---
    MOST_VIEWED_CACHE_TTL: int = Field(default=60, ge=1)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("SITE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Module-level exports ---

# Database
DATABASE_URL: str = settings.DB_URL

# Server
HOST: str = settings.HOST
PORT: int = settings.PORT
DEBUG: bool = settings.DEBUG
LOG_LEVEL: str = settings.LOG_LEVEL

# Redis
REDIS_URL: str = settings.REDIS_URL

# --- Paths (computed, not from env) ---
PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LOGS_PATH: str = os.path.join(PROJECT_ROOT, "logs")

"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    max_upload_size_mb: int = Field(
        10,
        description="Maximum bulk upload file size in megabytes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' for structured logs, 'plain' for humans",
    )
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared key/value store connection settings.

    ``url`` wins when set; otherwise the URL is assembled from host/port/db.
    """

    url: str | None = Field(None, description="Full redis:// URL")
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    db: int = Field(0, description="Redis logical database")
    password: str | None = Field(None, description="Redis password")
    socket_timeout_seconds: float = Field(
        2.0,
        description="Per-command socket timeout",
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Connection establishment timeout",
    )
    reconnect_interval_seconds: float = Field(
        30.0,
        description="Minimum delay before retrying a failed connection",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    def connection_url(self) -> str:
        if self.url:
            return self.url
        return f"redis://{self.host}:{self.port}/{self.db}"


class CacheSettings(BaseSettings):
    """Read-through cache configuration."""

    enabled: bool = Field(True, description="Disable to always go to the store")
    backend: str = Field("redis", description="Cache backend: 'redis' or 'memory'")
    ttl_seconds: int = Field(3600, description="Default entry time-to-live", ge=1)
    prefix: str = Field("chapterdash:", description="Prefix applied to every cache key")
    max_entries: int | None = Field(
        4096,
        description="Max entries for the in-memory backend (None for unlimited)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Shared configuration for the general and API rate limiters."""

    enabled: bool = Field(True, description="Enable per-IP rate limiting")
    backend: str = Field(
        "redis",
        description="Counter store: 'redis' (with in-process fallback) or 'memory'",
    )
    max: int = Field(
        30,
        description="General limiter: requests allowed per window",
        ge=1,
    )
    window_seconds: int = Field(60, description="Window size in seconds", ge=1)
    block_seconds: int = Field(
        60,
        description="General limiter: block duration once the allowance is exhausted",
        ge=1,
    )
    api_multiplier: int = Field(
        2,
        description="API limiter allowance as a multiple of the general allowance",
        ge=1,
    )
    fallback_max: int = Field(
        10,
        description="General limiter allowance while the shared store is unreachable",
        ge=1,
    )
    api_fallback_max: int = Field(
        20,
        description="API limiter allowance while the shared store is unreachable",
        ge=1,
    )
    fallback_window_seconds: int = Field(
        60,
        description="Window size for the in-process fallback limiters",
        ge=1,
    )
    probe_interval_seconds: float = Field(
        30.0,
        description="How long to stay on the fallback limiter before re-probing the store",
        ge=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @property
    def api_max(self) -> int:
        return self.max * self.api_multiplier

    @property
    def api_block_seconds(self) -> int:
        return max(1, self.block_seconds // 2)


class AuthSettings(BaseSettings):
    """Admin authentication for mutating endpoints."""

    admin_token: str | None = Field(
        None,
        description="Shared secret expected in the X-Admin-Token header",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Document store bootstrap settings."""

    seed_file: str | None = Field(
        None,
        description="JSON array of chapters imported at startup",
    )
    seed_delete_existing: bool = Field(
        False,
        description="Delete all chapters before importing the seed file",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()

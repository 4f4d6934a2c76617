"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

The rate limiter core never reads these settings directly; the host glue in
``window_limiter.core.rate_limit`` turns them into a ``LimiterConfig`` once.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from window_limiter.services.limits import parse_limits


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


_NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]+$")


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings populates values from environment variables; static type
    checkers still treat fields as constructor arguments, hence the ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


def _build_rate_limiter_settings() -> "RateLimiterSettings":
    """Build rate limiter settings from environment."""

    return RateLimiterSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level name")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimiterSettings(BaseSettings):
    """Rate limiter configuration surface.

    ``expires_seconds`` is the retention TTL of every recorded event. It must be
    larger than the longest window used anywhere in the application, otherwise
    history is silently truncated and requests are undercounted. Only the
    default limits can be checked here; call-site limits are the operator's
    responsibility.
    """

    enabled: bool = Field(False, description="Enable rate limiting")
    environments: list[str] = Field(
        default_factory=lambda: ["production"],
        description="APP_ENV values in which rate limiting is applied",
    )
    default_limits: list[int] = Field(
        default_factory=lambda: [10, 20],
        description="Flat requests/seconds pairs used when a route gives none",
    )
    send_headers: bool = Field(
        True,
        description="Emit rate limit headers and Retry-After on responses",
    )
    header_prefix: str = Field("Rate-Limit", description="Prefix for rate limit headers")
    namespace: str = Field("rate_limit", description="Key namespace in the event store")
    expires_seconds: int = Field(
        24 * 60 * 60,
        description="Retention TTL for recorded events, in seconds",
        ge=1,
    )
    store_backend: str = Field("memory", description="Event store backend: memory or redis")
    redis_url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    redis_socket_timeout_seconds: float = Field(
        2.0,
        description="Socket timeout for Redis calls; a timeout surfaces as a store error",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMITER_",
        case_sensitive=False,
    )

    @field_validator("store_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in {"memory", "redis"}:
            raise ValueError("store_backend must be 'memory' or 'redis'")
        return value

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        # Namespace is the first key component and part of every SCAN pattern.
        if not _NAMESPACE_PATTERN.match(value):
            raise ValueError(
                "namespace must be non-empty and contain only A-Z, a-z, 0-9, '_', '.', ':', '-'"
            )
        return value

    @model_validator(mode="after")
    def _check_default_limits(self) -> "RateLimiterSettings":
        limits = parse_limits(self.default_limits)
        longest = max(limit.seconds for limit in limits)
        if self.expires_seconds <= longest:
            raise ValueError(
                f"expires_seconds ({self.expires_seconds}) must be larger than the "
                f"longest default window ({longest})"
            )
        return self


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    rate_limiter: RateLimiterSettings = Field(default_factory=_build_rate_limiter_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()

"""Application settings and logging configuration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_CONTEXT: dict[str, str] = {"environment": "development", "service": "campus-api"}


class AppSettings(BaseModel):
    """Application identity and runtime settings."""

    environment: Literal["development", "staging", "production"]
    service: str = "campus-api"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    cors_origins: list[str] = Field(default_factory=list)
    trust_proxy_headers: bool = False


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(description="Async SQLAlchemy URL using asyncpg driver.")
    command_timeout_seconds: float = Field(default=5.0, gt=0)
    pool_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("url")
    @classmethod
    def validate_asyncpg_url(cls, value: str) -> str:
        """Ensure SQLAlchemy uses the asyncpg driver."""
        if not value.startswith("postgresql+asyncpg://"):
            raise ValueError("database.url must start with 'postgresql+asyncpg://'.")
        return value


class RedisSettings(BaseModel):
    """Redis connection settings."""

    url: str = Field(description="Redis URL.")
    socket_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("url")
    @classmethod
    def validate_redis_url(cls, value: str) -> str:
        """Ensure the Redis URL uses a supported scheme."""
        if not value.startswith(("redis://", "rediss://")):
            raise ValueError("redis.url must start with 'redis://' or 'rediss://'.")
        return value


class SessionSettings(BaseModel):
    """Session lifetime and cookie settings."""

    ttl_seconds: int = Field(default=86400, ge=1)
    cookie_name: str = "session_id"
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    cookie_secure: bool = False


class OTPSettings(BaseModel):
    """One-time code settings."""

    ttl_seconds: int = Field(default=300, ge=1)
    max_attempts: int = Field(default=5, ge=1)
    purpose: str = "password_change"


class SMTPSettings(BaseModel):
    """Outbound mail settings for OTP delivery."""

    host: str = ""
    port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    from_email: str = ""
    from_name: str = "Campus Ride"
    timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def configured(self) -> bool:
        """Return True when host and credentials are present."""
        return bool(self.host and self.username and self.password.get_secret_value())

    @property
    def sender_address(self) -> str:
        """Resolve the envelope sender, falling back to the SMTP username."""
        return self.from_email or self.username


class RateLimitSettings(BaseModel):
    """Rate limiting thresholds."""

    default_requests_per_minute: int = Field(default=120, ge=1)
    login_requests_per_minute: int = Field(default=10, ge=1)
    otp_requests_per_minute: int = Field(default=5, ge=1)


class GeolocationSettings(BaseModel):
    """IP geolocation lookup settings."""

    enabled: bool = True
    base_url: str = "http://ip-api.com/json"
    timeout_seconds: float = Field(default=3.0, gt=0)


class BackgroundSettings(BaseModel):
    """Detached background task settings."""

    task_timeout_seconds: float = Field(default=5.0, gt=0)
    max_pending_tasks: int = Field(default=1000, ge=1)


class AdminSeedSettings(BaseModel):
    """Initial SuperAdmin account seeded by the CLI."""

    username: str = ""
    email: str = ""
    password: SecretStr = SecretStr("")


class Settings(BaseSettings):
    """Root application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app: AppSettings
    database: DatabaseSettings
    redis: RedisSettings
    session: SessionSettings = Field(default_factory=SessionSettings)
    otp: OTPSettings = Field(default_factory=OTPSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    geolocation: GeolocationSettings = Field(default_factory=GeolocationSettings)
    background: BackgroundSettings = Field(default_factory=BackgroundSettings)
    admin: AdminSeedSettings = Field(default_factory=AdminSeedSettings)


def _standard_log_fields(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Inject required structured logging fields."""
    context_vars = structlog.contextvars.get_contextvars()
    event_dict.setdefault("request_id", str(context_vars.get("request_id", "unknown")))
    event_dict.setdefault("environment", _LOG_CONTEXT["environment"])
    event_dict.setdefault("service", _LOG_CONTEXT["service"])
    event_dict.setdefault("timestamp", datetime.now(UTC).isoformat())
    return event_dict


def configure_structlog(settings: Settings) -> None:
    """Configure structlog for JSON output with required fields."""
    _LOG_CONTEXT["environment"] = settings.app.environment
    _LOG_CONTEXT["service"] = settings.app.service

    log_level = getattr(logging, settings.app.log_level, logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _standard_log_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Load and cache application settings from environment variables."""
    return Settings()

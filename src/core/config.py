"""Centralized configuration management with environment-aware defaults.

Configuration is read with Pydantic Settings from environment variables and an
optional .env file. Nested sections use the ``__`` delimiter, for example
``DATABASE_CONFIG__DATABASE_URL`` or ``DATABASE_CONFIG__MAX_RETRIES``.

The execution mode matters to the connection layer: in serverless mode every
invocation may run in a short-lived, possibly reused context, so the database
pool is kept small and idle closing is disabled. When ``SERVERLESS`` is not set
it is detected from the hosting platform's environment variables.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Environment variables set by serverless platforms
SERVERLESS_ENV_MARKERS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "K_SERVICE")


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "database_url",
            "authorization",
        ],
        description="Extra field names whose values are redacted in console logs",
    )


class ConnectionOptions(BaseModel):
    """Pool and timeout options handed to the storage driver on connect."""

    model_config = ConfigDict(frozen=True)

    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=5, ge=0, le=50)
    pool_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Seconds a request may wait for a pooled connection",
    )
    pool_recycle: int = Field(
        default=3600,
        gt=0,
        description="Seconds after which an idle pooled connection is replaced",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-attempt timeout for establishing a server connection",
    )
    command_timeout: float = Field(default=60.0, gt=0)
    pool_pre_ping: bool = Field(default=True)


def _serverless_profile() -> ConnectionOptions:
    # One connection per invocation, no queueing, longer cold-path connect
    return ConnectionOptions(
        pool_size=1,
        max_overflow=0,
        pool_timeout=5.0,
        pool_recycle=300,
        connect_timeout=30.0,
    )


class DatabaseConfig(BaseModel):
    """Database connection, retry and idle-time settings."""

    database_url: str = Field(
        default="",
        description="Database connection URL (postgresql+asyncpg://...)",
    )
    echo: bool = Field(
        default=False,
        description="Whether to log SQL statements (use only for debugging)",
    )
    persistent_pool: ConnectionOptions = Field(
        default_factory=ConnectionOptions,
        description="Driver options for long-running processes",
    )
    serverless_pool: ConnectionOptions = Field(
        default_factory=_serverless_profile,
        description="Driver options for serverless invocations",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Connection attempts before giving up",
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Backoff delay after the first failed attempt (seconds)",
    )
    retry_max_delay: float = Field(
        default=10.0,
        ge=0,
        description="Upper bound for the backoff delay (seconds)",
    )
    retry_factor: float = Field(default=2.0, ge=1.0)
    max_idle_seconds: float = Field(
        default=30 * 60,
        gt=0,
        description="Close the connection after this long without use",
    )
    failure_cooldown_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Fail fast for this long after a failed attempt (0 disables)",
    )

    @field_validator("database_url", mode="after")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses the async PostgreSQL driver when set."""
        if v and not v.startswith("postgresql+asyncpg://"):
            msg = "Database URL must use postgresql+asyncpg:// driver for async support"
            raise ValueError(msg)
        return v

    def connection_options(self, serverless: bool) -> ConnectionOptions:
        """Return the driver options for the given execution mode."""
        return self.serverless_pool if serverless else self.persistent_pool


class KeepWarmConfig(BaseModel):
    """Settings for the keep-warm pinger used against serverless deployments."""

    urls: list[str] = Field(
        default_factory=list,
        description="Endpoints to ping, e.g. https://example.app/health",
    )
    timeout_seconds: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(default="Kanban API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=False, description="Debug mode flag")
    serverless: bool | None = Field(
        default=None,
        description="Serverless execution mode. Auto-detected if not specified.",
    )

    # API settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=5000, description="API port")
    api_prefix: str = Field(default="/api/v1", description="Versioned API prefix")
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")
    redoc_url: str | None = Field(default=None, description="ReDoc URL")
    openapi_url: str | None = Field(
        default="/openapi.json", description="OpenAPI schema URL"
    )

    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    database_config: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    keep_warm_config: KeepWarmConfig = Field(
        default_factory=KeepWarmConfig, description="Keep-warm pinger configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Resolve auto-detected values."""
        super().model_post_init(__context)

        if self.serverless is None:
            self.serverless = _detect_serverless()

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    @property
    def is_serverless(self) -> bool:
        """Serverless flag with auto-detection already applied."""
        return bool(self.serverless)

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Pick JSON logs wherever a log collector reads stdout."""
        if self.is_serverless or self.environment != "development":
            return "json"
        return "console"

    @field_validator("docs_url", "redoc_url", "openapi_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


def _detect_serverless() -> bool:
    return any(os.getenv(marker) for marker in SERVERLESS_ENV_MARKERS)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

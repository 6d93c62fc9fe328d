"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load (and is the runtime mode flag)
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
if _env_file and os.getenv("TESTING", "").lower() != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat fields as constructor
    arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Examples:
        >>> parse_csv("https://a.example, https://b.example")
        ['https://a.example', 'https://b.example']
        >>> parse_csv(None)
        []
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' for structured output or 'plain'",
    )
    output: str = Field("stdout", description="Log sink: 'stdout' or 'file'")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Gateway-wide configuration."""

    host: str = Field("0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(5595, description="Listening port", ge=1, le=65535)
    database_url: str = Field(
        "sqlite:///./universal_backend.db",
        description="Storage connection string (SQLAlchemy URL)",
    )
    jwt_secret: str | None = Field(
        None,
        description="Signing secret reserved for bearer token validation",
    )
    cors_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins ('*' allows any)",
    )
    request_timeout_seconds: float = Field(
        30.0,
        description="Abort request handling after this many seconds",
        gt=0,
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable the per-client rate limit gate",
    )
    rate_limit_requests: int = Field(
        100,
        description="Maximum number of requests allowed per window (per client key)",
        ge=1,
    )
    rate_limit_window_seconds: float = Field(
        15 * 60,
        description="Rate limit window size in seconds",
        gt=0,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    rate_limit_redis_url: str | None = Field(
        None,
        description="Redis URL for a shared rate limit store (in-memory when unset)",
    )

    unified_error_envelope: bool = Field(
        False,
        description="Render auth/rate-limit rejections with status and timestamp fields",
    )
    routes_package: str = Field(
        "app.api.routes.dynamic",
        description="Package whose modules expose additional routers to load at startup",
    )
    optional_subsystems: str = Field(
        "bot=app.bot,matchmaker=app.matchmaker",
        description="Comma-separated name=module[:callable] entries activated best-effort",
    )
    shutdown_drain_seconds: float = Field(
        0,
        description="Graceful drain on SIGINT/SIGTERM; 0 exits immediately",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return parse_csv(self.cors_origins) or ["*"]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()


def get_app_settings(request) -> AppSettings:
    """Settings of the application serving ``request``.

    ``create_app`` stores its settings on ``app.state.settings``; apps built
    without it fall back to the global settings.
    """
    cfg = getattr(request.app.state, "settings", None)
    return cfg if isinstance(cfg, AppSettings) else settings.app

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

from app.adapters.rate_limit.base import PolicyConfig


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


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


GENERAL_POLICY = "general"
AI_POLICY = "ai"
TRANSCRIPTION_POLICY = "transcription"


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    title: str = Field(
        "TıpScribe API",
        description="Title shown in the OpenAPI docs",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request id",
    )
    key_hash_secret: str | None = Field(
        None,
        description=(
            "HMAC secret for client key digests in logs; a random per-process "
            "secret is used when unset"
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-client fixed-window rate limit policies.

    Three independent policies guard the API: general traffic, AI note
    generation and audio transcription.
    """

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    include_headers: bool = Field(
        True,
        description="Send a Retry-After header when throttling",
    )
    trust_forwarded_for: bool = Field(
        False,
        description="Key clients by the first X-Forwarded-For address (behind a proxy)",
    )
    sweep_interval_ms: int = Field(
        0,
        description="Drop stale client entries at most once per interval (0 keeps them)",
        ge=0,
    )

    general_window_ms: int = Field(60_000, description="General window length (ms)", ge=1)
    general_max_requests: int = Field(100, description="General requests per window", ge=1)
    general_message: str = Field(
        "Çok fazla istek gönderiyorsunuz. Lütfen bir dakika bekleyin.",
        description="Message returned when the general limit is exceeded",
    )

    ai_window_ms: int = Field(60_000, description="AI window length (ms)", ge=1)
    ai_max_requests: int = Field(10, description="AI requests per window", ge=1)
    ai_message: str = Field(
        "AI işlemleri için rate limit aşıldı. Lütfen bekleyin.",
        description="Message returned when the AI limit is exceeded",
    )

    transcription_window_ms: int = Field(
        60_000, description="Transcription window length (ms)", ge=1
    )
    transcription_max_requests: int = Field(
        20, description="Transcription requests per window", ge=1
    )
    transcription_message: str = Field(
        "Ses transkripsiyon limiti aşıldı. Lütfen bekleyin.",
        description="Message returned when the transcription limit is exceeded",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def policy(self, name: str) -> PolicyConfig:
        """Build the PolicyConfig for a named policy.

        Args:
            name: One of "general", "ai", "transcription".

        Raises:
            KeyError: If the policy name is unknown.
        """
        if name not in (GENERAL_POLICY, AI_POLICY, TRANSCRIPTION_POLICY):
            raise KeyError(name)
        return PolicyConfig(
            window_duration_ms=getattr(self, f"{name}_window_ms"),
            max_requests_per_window=getattr(self, f"{name}_max_requests"),
            rejection_message=getattr(self, f"{name}_message"),
            name=name,
        )

    def policies(self) -> dict[str, PolicyConfig]:
        return {
            name: self.policy(name)
            for name in (GENERAL_POLICY, AI_POLICY, TRANSCRIPTION_POLICY)
        }


def _build_app_settings() -> AppSettings:
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    hence the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> LogSettings:
    return LogSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()

"""
Application configuration models and helpers.

Centralizes settings management so the OAuth flow, the session codec and the
export poller share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MAX_SESSION_TTL_SECONDS = 60 * 60 * 24


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class OnshapeSettings(BaseSettings):
    """OAuth client registration and document API endpoints."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(..., validation_alias="OAUTH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="OAUTH_CLIENT_SECRET")
    callback_url: AnyHttpUrl = Field(..., validation_alias="OAUTH_CALLBACK_URL")
    oauth_base_url: str = Field(
        "https://oauth.onshape.com",
        validation_alias="OAUTH_URL",
        description="Base URL hosting the /oauth/authorize and /oauth/token endpoints.",
    )
    api_base_url: str = Field(
        "https://cad.onshape.com/api",
        validation_alias="ONSHAPE_API_URL",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("OAuth2Read",),
        validation_alias="OAUTH_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())

    @field_validator("oauth_base_url", "api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SecuritySettings(BaseSettings):
    """Session credential signing configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    session_secret: str = Field(
        ...,
        validation_alias="SESSION_SECRET",
        description="Secret used to derive the symmetric key for session envelopes.",
    )
    session_ttl_seconds: int = Field(
        MAX_SESSION_TTL_SECONDS,
        gt=0,
        le=MAX_SESSION_TTL_SECONDS,
        validation_alias="SESSION_TTL_SECONDS",
    )
    cookie_name: str = Field("auth_token", validation_alias="SESSION_COOKIE_NAME")


class ExportSettings(BaseSettings):
    """Polling budget for asynchronous translation jobs."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    max_poll_attempts: int = Field(20, gt=0, validation_alias="EXPORT_MAX_POLL_ATTEMPTS")
    translation_poll_interval: float = Field(
        0.5,
        ge=0,
        validation_alias="EXPORT_TRANSLATION_POLL_INTERVAL",
        description="Delay between status checks for lightweight translations.",
    )
    assembly_poll_interval: float = Field(
        1.0,
        ge=0,
        validation_alias="EXPORT_ASSEMBLY_POLL_INTERVAL",
        description="Delay between status checks for full assembly exports.",
    )
    http_timeout_seconds: float = Field(30.0, gt=0, validation_alias="ONSHAPE_HTTP_TIMEOUT")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[str] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Where the browser lands after sign-in; defaults to the site root.",
    )
    onshape: OnshapeSettings = Field(default_factory=OnshapeSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    export: ExportSettings = Field(default_factory=ExportSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "ExportSettings",
    "MAX_SESSION_TTL_SECONDS",
    "OnshapeSettings",
    "SecuritySettings",
    "get_settings",
]

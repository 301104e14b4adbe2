"""
Application configuration models and helpers.

Centralizes settings management so the OAuth HTTP surface, the token
lifecycle manager and the request gateway share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
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
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class BasecampSettings(BaseSettings):
    """Credentials and endpoints for the Basecamp API and Launchpad."""

    model_config = SettingsConfigDict(env_prefix="BASECAMP_", extra="ignore")

    client_id: str
    client_secret: str
    redirect_uri: AnyHttpUrl
    user_agent: str = Field(
        "Basecamp MCP Server (ops@basecamp-mcp.dev)",
        description="Basecamp rejects API requests that do not identify the caller.",
    )
    api_base_url: str = Field("https://3.basecampapi.com")
    launchpad_url: str = Field("https://launchpad.37signals.com")
    product: str = Field(
        "bc3",
        description="Account product eligible for access (Basecamp 3 / 4).",
    )


class ClientSettings(BaseSettings):
    """Dispatch limits applied by every request gateway instance."""

    model_config = SettingsConfigDict(env_prefix="BASECAMP_", extra="ignore")

    max_concurrency: int = Field(5, ge=1)
    max_attempts: int = Field(
        4,
        ge=0,
        description="Rate-limit retries before a RateLimitError is surfaced.",
    )
    request_timeout: float = Field(30.0, gt=0)
    refresh_buffer: int = Field(
        300,
        ge=0,
        description="Seconds before expiry at which access tokens are refreshed.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Comma-separated secrets used to encrypt stored tokens. The first "
            "secret encrypts; the rest only decrypt, which allows rotation."
        ),
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")

    @field_validator("token_encryption_secret", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value)

    @property
    def encryption_secrets(self) -> tuple[str, ...]:
        """Configured secrets in priority order."""
        if not self.token_encryption_secret:
            return ()
        return tuple(
            part.strip()
            for part in self.token_encryption_secret.split(",")
            if part.strip()
        )


class AppSettings(BaseSettings):
    """Root settings object for the service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    token_db_path: str = Field("./tokens.db", validation_alias="TOKEN_DB_PATH")
    public_base_url: str = Field(
        "http://localhost:3000",
        validation_alias="PUBLIC_BASE_URL",
        description="Externally reachable base URL, used to build re-auth links.",
    )
    frontend_base_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL browsers are sent to after a completed OAuth flow.",
    )
    basecamp: BasecampSettings = Field(default_factory=BasecampSettings)
    client: ClientSettings = Field(default_factory=ClientSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def reauth_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/oauth/start"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BasecampSettings",
    "ClientSettings",
    "SecuritySettings",
    "get_settings",
]

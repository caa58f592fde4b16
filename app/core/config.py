"""
Application configuration models and helpers.

Every group reads its values from the environment (or a local ``.env`` file)
so the API process and the test-suite share one configuration surface.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
)


def _validate_http_address(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an HTTP/HTTPS URL")
    if value.endswith("/"):
        raise ValueError("must not have a trailing slash")
    return value


class OAuthSettings(BaseSettings):
    """Configuration for the upstream whiteboard OAuth provider."""

    model_config = _ENV_CONFIG

    client_id: str = Field(..., validation_alias="OAUTH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="OAUTH_CLIENT_SECRET")
    redirect_uri: str = Field(..., validation_alias="OAUTH_REDIRECT_URI")
    token_uri: str = Field(
        "https://api.miro.com/v1/oauth/token", validation_alias="OAUTH_TOKEN_URI"
    )
    authorize_uri: str = Field(
        "https://miro.com/oauth/authorize", validation_alias="OAUTH_AUTHORIZE_URI"
    )
    timeout_seconds: float = Field(4.0, validation_alias="OAUTH_TIMEOUT", gt=0)
    expiry_margin_seconds: int = Field(
        10,
        validation_alias="OAUTH_EXPIRY_MARGIN",
        ge=0,
        description="Subtracted from the provider-reported token lifetime.",
    )

    @field_validator("redirect_uri", "token_uri", "authorize_uri")
    @classmethod
    def _check_address(cls, value: str) -> str:
        return _validate_http_address(value)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _ENV_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric keys for encrypting stored tokens."
        ),
    )


class StorageSettings(BaseSettings):
    """Location of the SQLite database backing tokens and board settings."""

    model_config = _ENV_CONFIG

    database_path: str = Field(
        "data/integration.sqlite3", validation_alias="DATABASE_PATH"
    )
    timeout_seconds: float = Field(5.0, validation_alias="DATABASE_TIMEOUT", gt=0)


class CacheSettings(BaseSettings):
    """Read-through cache used in front of board settings."""

    model_config = _ENV_CONFIG

    key_prefix: str = Field("app:cache:", validation_alias="CACHE_KEY_PREFIX")
    ttl_seconds: int = Field(300, validation_alias="CACHE_TTL", gt=0)


class CookieSettings(BaseSettings):
    """Session cookie issued after a successful installation."""

    model_config = _ENV_CONFIG

    name: str = Field("asc_miro_token", validation_alias="COOKIE_NAME")
    path: str = Field("/", validation_alias="COOKIE_PATH")
    max_age: int = Field(7 * 24 * 60 * 60, validation_alias="COOKIE_MAX_AGE", gt=0)
    secure: bool = Field(True, validation_alias="COOKIE_SECURE")
    http_only: bool = Field(True, validation_alias="COOKIE_HTTP_ONLY")
    same_site: Literal["none", "lax", "strict"] = Field(
        "none", validation_alias="COOKIE_SAME_SITE"
    )
    session_ttl_seconds: int = Field(24 * 60 * 60, validation_alias="SESSION_TTL", gt=0)
    refresh_threshold_seconds: int = Field(
        60 * 60,
        validation_alias="SESSION_REFRESH_THRESHOLD",
        ge=0,
        description="Sessions closer than this to expiry re-check the upstream token.",
    )

    @field_validator("same_site", mode="before")
    @classmethod
    def _lower_same_site(cls, value: str) -> str:
        return value.lower() if isinstance(value, str) else value


class DocumentServerSettings(BaseSettings):
    """Settings for talking to customer-hosted document servers."""

    model_config = _ENV_CONFIG

    timeout_seconds: float = Field(3.0, validation_alias="DOCSERVER_TIMEOUT", gt=0)
    min_version: str = Field("8.2", validation_alias="DOCSERVER_MIN_VERSION")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    app_url: str = Field(
        "https://miro.com/app/dashboard",
        validation_alias="MIRO_APP_URL",
        description="Where users land after the installation flow completes.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    cookie: CookieSettings = Field(default_factory=CookieSettings)
    docserver: DocumentServerSettings = Field(default_factory=DocumentServerSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CacheSettings",
    "CookieSettings",
    "DocumentServerSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]

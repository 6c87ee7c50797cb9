"""
Application configuration models and helpers.

Centralizes settings management so the HTTP layer, the dependency factories
and operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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


class ShopifySettings(BaseSettings):
    """Credentials and endpoints shared with the commerce platform."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: str = Field(..., validation_alias="SHOPIFY_API_KEY")
    api_secret: str = Field(..., validation_alias="SHOPIFY_API_SECRET")
    scopes: str = Field("read_products", validation_alias="SHOPIFY_SCOPES")
    callback_url: AnyHttpUrl = Field(..., validation_alias="OAUTH_CALLBACK_URL")
    shop_domain_suffix: str = Field(
        "myshopify.com",
        validation_alias="SHOP_DOMAIN_SUFFIX",
        description="Platform suffix every tenant domain must end with.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _normalize_scopes(cls, value: str | list[str] | tuple[str, ...]) -> str:
        """Accept scopes as a list or a comma-separated string."""
        if isinstance(value, (list, tuple)):
            items = value
        else:
            items = value.split(",")
        return ",".join(scope.strip() for scope in items if scope.strip())


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    session_secret: Optional[str] = Field(
        None,
        validation_alias="APP_SESSION_SECRET",
        description=(
            "Key for signing session cookies. Falls back to the Shopify API secret."
        ),
    )
    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    cookie_secure: bool = Field(False, validation_alias="SESSION_COOKIE_SECURE")


class OAuthSettings(BaseSettings):
    """OAuth flow timing configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    session_ttl_seconds: int = Field(900, validation_alias="SESSION_TTL")
    token_exchange_timeout: float = Field(
        10.0, validation_alias="TOKEN_EXCHANGE_TIMEOUT"
    )


class StorageSettings(BaseSettings):
    """Backing stores for OAuth state and installed shops."""

    model_config = SettingsConfigDict(populate_by_name=True)

    state_backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="STATE_BACKEND"
    )
    database_path: str = Field("data/shop_auth.db", validation_alias="DATABASE_PATH")
    dynamodb_table_name: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_TABLE_NAME",
        description="Table holding OAuth state records when STATE_BACKEND=dynamodb.",
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "ShopifySettings",
    "StorageSettings",
    "get_settings",
]

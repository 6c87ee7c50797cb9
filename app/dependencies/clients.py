"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from app.clients import (
    DynamoDBStateStore,
    ShopifyOAuthClient,
    SQLiteShopRepository,
    SQLiteStateStore,
)
from app.core.config import get_settings
from app.services import (
    CredentialCipher,
    InstallFlow,
    InstallFlowConfig,
    SessionCodec,
    ShopDomainValidator,
    StateStore,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_shop_domain_validator() -> ShopDomainValidator:
    """Provide the process-wide shop domain validator."""
    return ShopDomainValidator(_settings().shopify.shop_domain_suffix)


@lru_cache()
def get_credential_cipher() -> CredentialCipher:
    """Provide symmetric encryption helper for access token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret
    if not secret:
        logger.warning(
            "TOKEN_ENCRYPTION_SECRET not set; deriving it from the Shopify API secret."
        )
        secret = settings.shopify.api_secret
    return CredentialCipher(secret=secret)


@lru_cache()
def get_session_codec() -> SessionCodec:
    """Provide the session cookie codec."""
    settings = _settings()
    secret = settings.security.session_secret
    if not secret:
        logger.warning(
            "APP_SESSION_SECRET not set; signing sessions with the Shopify API secret."
        )
        secret = settings.shopify.api_secret
    return SessionCodec(secret)


@lru_cache()
def get_state_store() -> StateStore:
    """Provide the configured OAuth state backend."""
    storage = _settings().storage
    if storage.state_backend == "dynamodb":
        return DynamoDBStateStore.from_settings(storage)
    return SQLiteStateStore(storage.database_path)


@lru_cache()
def get_shop_repository() -> SQLiteShopRepository:
    """Provide the installed shop repository."""
    return SQLiteShopRepository(
        _settings().storage.database_path, cipher=get_credential_cipher()
    )


@lru_cache()
def get_shopify_oauth_client() -> ShopifyOAuthClient:
    """Create a singleton Shopify OAuth client."""
    settings = _settings()
    return ShopifyOAuthClient(
        api_key=settings.shopify.api_key,
        api_secret=settings.shopify.api_secret,
        scopes=settings.shopify.scopes,
        callback_url=str(settings.shopify.callback_url),
        timeout=settings.oauth.token_exchange_timeout,
    )


def get_install_flow_config() -> InstallFlowConfig:
    """Translate settings into the orchestrator's explicit configuration."""
    settings = _settings()
    return InstallFlowConfig(
        api_key=settings.shopify.api_key,
        api_secret=settings.shopify.api_secret,
        scopes=settings.shopify.scopes,
        callback_url=str(settings.shopify.callback_url),
        state_ttl=timedelta(seconds=settings.oauth.state_ttl_seconds),
        session_ttl=timedelta(seconds=settings.oauth.session_ttl_seconds),
    )


@lru_cache()
def get_install_flow() -> InstallFlow:
    """Build the install flow orchestrator from the shared collaborators."""
    return InstallFlow(
        get_install_flow_config(),
        validator=get_shop_domain_validator(),
        state_store=get_state_store(),
        shop_repository=get_shop_repository(),
        oauth_client=get_shopify_oauth_client(),
        session_codec=get_session_codec(),
    )


__all__ = [
    "get_credential_cipher",
    "get_install_flow",
    "get_install_flow_config",
    "get_session_codec",
    "get_shop_domain_validator",
    "get_shop_repository",
    "get_shopify_oauth_client",
    "get_state_store",
]

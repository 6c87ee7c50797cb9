"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_cipher,
    get_install_flow,
    get_install_flow_config,
    get_session_codec,
    get_shop_domain_validator,
    get_shop_repository,
    get_shopify_oauth_client,
    get_state_store,
)
from .config import (
    SessionCookiePolicy,
    get_app_settings,
    get_session_cookie_policy,
)

__all__ = [
    "SessionCookiePolicy",
    "get_app_settings",
    "get_credential_cipher",
    "get_install_flow",
    "get_install_flow_config",
    "get_session_codec",
    "get_shop_domain_validator",
    "get_shop_repository",
    "get_session_cookie_policy",
    "get_shopify_oauth_client",
    "get_state_store",
]

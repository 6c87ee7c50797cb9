"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBStateStore
from .shopify_oauth import AccessTokenResponse, OAuthTokenExchangeError, ShopifyOAuthClient
from .sqlite_store import SQLiteShopRepository, SQLiteStateStore

__all__ = [
    "AccessTokenResponse",
    "DynamoDBStateStore",
    "OAuthTokenExchangeError",
    "SQLiteShopRepository",
    "SQLiteStateStore",
    "ShopifyOAuthClient",
]

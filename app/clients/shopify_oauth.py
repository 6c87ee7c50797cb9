"""
Shopify OAuth utilities.

Builds the authorize redirect for a shop and trades a one-time authorization
code for the shop's offline access token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from urllib.parse import urlencode

import httpx

from app.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class OAuthTokenExchangeError(UpstreamError):
    """Raised when the token endpoint fails or returns an unusable payload."""

    code = "token_exchange_failed"
    default_message = "Failed to exchange token."


@dataclass(frozen=True)
class AccessTokenResponse:
    access_token: str
    scope: str

    def __repr__(self) -> str:
        return f"AccessTokenResponse(access_token=***, scope={self.scope!r})"


class ShopifyOAuthClient:
    """Build authorization URLs and exchange authorization codes."""

    AUTHORIZE_PATH = "/admin/oauth/authorize"
    TOKEN_PATH = "/admin/oauth/access_token"

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        scopes: str,
        callback_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._scopes = scopes
        self._callback_url = callback_url
        self._timeout = timeout
        self._transport = transport

    def build_authorization_url(self, shop: str, state: str) -> str:
        """Construct the consent URL carrying ``state`` as the CSRF nonce."""
        if not all((shop, self._api_key, self._scopes, self._callback_url, state)):
            raise ValueError("Missing required OAuth input.")
        query = urlencode(
            {
                "client_id": self._api_key,
                "scope": self._scopes,
                "redirect_uri": self._callback_url,
                "state": state,
            }
        )
        return f"https://{shop}{self.AUTHORIZE_PATH}?{query}"

    async def exchange_code(self, shop: str, code: str) -> AccessTokenResponse:
        """
        Exchange an authorization code for an offline access token.

        Any transport failure, timeout, non-200 status or malformed body is an
        ``OAuthTokenExchangeError``; nothing is retried.
        """
        payload = {
            "client_id": self._api_key,
            "client_secret": self._api_secret,
            "code": code,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"https://{shop}{self.TOKEN_PATH}", json=payload, headers=headers
                )
        except httpx.TimeoutException as exc:
            raise OAuthTokenExchangeError("Token exchange timed out.") from exc
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError("Failed to reach token endpoint.") from exc

        if response.status_code != HTTPStatus.OK:
            logger.debug(
                "Token endpoint for %s returned %s: %.200s",
                shop,
                response.status_code,
                response.text,
            )
            raise OAuthTokenExchangeError(
                f"Token endpoint returned status {response.status_code}."
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Failed to parse token response.") from exc

        if not isinstance(token_payload, dict):
            raise OAuthTokenExchangeError("Failed to parse token response.")
        access_token = token_payload.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise OAuthTokenExchangeError("Incomplete token payload returned.")

        return AccessTokenResponse(
            access_token=access_token,
            scope=str(token_payload.get("scope") or ""),
        )


__all__ = ["AccessTokenResponse", "OAuthTokenExchangeError", "ShopifyOAuthClient"]

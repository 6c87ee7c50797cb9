"""
Install flow orchestration.

Sequences the shop-domain validator, request signatures, OAuth state records,
the token exchange and session tokens across login, callback and protected
access:

    UNAUTHENTICATED -> PENDING_INSTALL -> AUTHORIZED -> SESSION_ACTIVE

``SESSION_ACTIVE`` falls back to ``UNAUTHENTICATED`` only through cookie
expiry. The orchestrator owns no durable state and never retries; every
failure raises an ``AuthFlowError`` and the client restarts at login.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Protocol
from urllib.parse import urlencode

from app.clients.shopify_oauth import AccessTokenResponse
from app.core.errors import (
    AuthenticationError,
    InvalidState,
    MissingCallbackParameters,
    MissingSession,
    SessionDomainMismatch,
    ShopNotFoundError,
    ShopNotInstalled,
    UpstreamError,
)
from app.models.shop import Shop
from app.services.request_signature import (
    SIGNATURE_PARAM,
    QueryParams,
    RequestAuthenticator,
    query_pairs,
)
from app.services.session_codec import SessionCodec
from app.services.shop_domain import ShopDomainValidator
from app.services.state_store import StateStore

logger = logging.getLogger(__name__)


class FlowState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_INSTALL = "pending_install"
    AUTHORIZED = "authorized"
    SESSION_ACTIVE = "session_active"


class ShopRepository(Protocol):
    def get_by_domain(self, shop: str) -> Shop:
        """Return the installed shop or raise ``ShopNotFoundError``."""
        ...

    def exists(self, shop: str) -> bool:
        ...

    def upsert(self, shop: str, access_token: str, scopes: str) -> Shop:
        ...


class OAuthClient(Protocol):
    def build_authorization_url(self, shop: str, state: str) -> str:
        ...

    async def exchange_code(self, shop: str, code: str) -> AccessTokenResponse:
        ...


@dataclass(frozen=True)
class InstallFlowConfig:
    """Explicit configuration handed to the orchestrator at construction."""

    api_key: str
    api_secret: str = field(repr=False)
    scopes: str
    callback_url: str
    state_ttl: timedelta = timedelta(minutes=10)
    session_ttl: timedelta = timedelta(minutes=15)
    dashboard_path: str = "/api/dashboard"


@dataclass(frozen=True)
class FlowOutcome:
    """Where the client goes next, and the session it carries if any."""

    state: FlowState
    shop: str
    redirect_url: str
    session_token: Optional[str] = field(default=None, repr=False)


def _first(pairs: list[tuple[str, str]], name: str) -> str:
    for key, value in pairs:
        if key == name:
            return value
    return ""


class InstallFlow:
    """State machine driving install, callback and session checks."""

    def __init__(
        self,
        config: InstallFlowConfig,
        *,
        validator: ShopDomainValidator,
        state_store: StateStore,
        shop_repository: ShopRepository,
        oauth_client: OAuthClient,
        session_codec: SessionCodec,
    ) -> None:
        self._config = config
        self._validator = validator
        self._authenticator = RequestAuthenticator(config.api_secret)
        self._states = state_store
        self._shops = shop_repository
        self._oauth = oauth_client
        self._sessions = session_codec

    @property
    def session_max_age(self) -> int:
        return int(self._config.session_ttl.total_seconds())

    def _dashboard_url(self, shop: str) -> str:
        return f"{self._config.dashboard_path}?{urlencode({'shop': shop})}"

    def _issue_session(self, shop: str) -> FlowOutcome:
        token = self._sessions.sign(shop, self._config.session_ttl)
        return FlowOutcome(
            state=FlowState.SESSION_ACTIVE,
            shop=shop,
            redirect_url=self._dashboard_url(shop),
            session_token=token,
        )

    def _verify_signature(self, pairs: list[tuple[str, str]], shop: str) -> None:
        try:
            self._authenticator.validate(pairs)
        except AuthenticationError as exc:
            logger.warning("Rejected request signature for %s: %s", shop, exc.code)
            raise

    async def login(self, params: QueryParams) -> FlowOutcome:
        """Start an install, or re-issue a session for an installed shop.

        The signature is optional here, but when present it must validate.
        Only a signed request for an installed shop takes the session fast
        path; everything else gets a fresh nonce and the authorize redirect.
        """
        pairs = query_pairs(params)
        shop = self._validator.require(_first(pairs, "shop"))

        signed = bool(_first(pairs, SIGNATURE_PARAM))
        if signed:
            self._verify_signature(pairs, shop)

        installed = await asyncio.to_thread(self._shops.exists, shop)
        if installed and signed:
            logger.info("Re-issuing session for installed shop %s", shop)
            return self._issue_session(shop)

        nonce = await asyncio.to_thread(
            self._states.create, shop, self._config.state_ttl
        )
        authorize_url = self._oauth.build_authorization_url(shop, nonce)
        logger.info("Redirecting %s to the authorize endpoint", shop)
        return FlowOutcome(
            state=FlowState.PENDING_INSTALL,
            shop=shop,
            redirect_url=authorize_url,
        )

    async def callback(self, params: QueryParams) -> FlowOutcome:
        """Complete an install started by ``login``."""
        pairs = query_pairs(params)
        raw_shop = _first(pairs, "shop")
        code = _first(pairs, "code")
        state = _first(pairs, "state")
        if not raw_shop or not code or not _first(pairs, SIGNATURE_PARAM) or not state:
            raise MissingCallbackParameters()

        shop = self._validator.require(raw_shop)
        self._verify_signature(pairs, shop)

        if not await asyncio.to_thread(self._states.consume, shop, state):
            logger.warning("Rejected unknown, replayed or expired state for %s", shop)
            raise InvalidState()

        try:
            token = await self._oauth.exchange_code(shop, code)
        except UpstreamError as exc:
            logger.error("Token exchange failed for %s: %s", shop, exc.message)
            raise

        await asyncio.to_thread(
            self._shops.upsert, shop, token.access_token, token.scope
        )
        logger.info("Installed shop %s with scopes %s", shop, token.scope)
        return self._issue_session(shop)

    def check_session(self, cookie: Optional[str], shop: Optional[str]) -> str:
        """Return the shop proven by ``cookie`` if it matches the requested one."""
        requested = self._validator.require(shop)
        if not cookie:
            raise MissingSession()
        session_shop = self._sessions.verify(cookie)
        if session_shop != requested:
            logger.warning(
                "Session for %s presented for shop %s", session_shop, requested
            )
            raise SessionDomainMismatch()
        return session_shop

    def dashboard(self, cookie: Optional[str], shop: Optional[str]) -> Shop:
        """Load the installed shop behind a valid session."""
        verified = self.check_session(cookie, shop)
        try:
            return self._shops.get_by_domain(verified)
        except ShopNotFoundError as exc:
            raise ShopNotInstalled() from exc

    def health(self) -> dict:
        return {"status": "ok"}


__all__ = [
    "FlowOutcome",
    "FlowState",
    "InstallFlow",
    "InstallFlowConfig",
    "OAuthClient",
    "ShopRepository",
]

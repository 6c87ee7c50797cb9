"""
Structured error taxonomy for the install/authentication flow.

Core components raise these instead of formatting responses; the HTTP layer
maps each category onto a status code and renders ``code`` and ``message``.
Messages are safe to show to clients and never carry secret material.
"""

from __future__ import annotations


class AuthFlowError(Exception):
    """Base class for every error surfaced by the install flow."""

    code = "auth_flow_error"
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ClientInputError(AuthFlowError):
    """The request is missing or carries malformed input."""

    code = "invalid_request"
    default_message = "Invalid request."


class MissingShopDomain(ClientInputError):
    code = "missing_shop"
    default_message = (
        "Missing shop query parameter. Example: ?shop=your-store.myshopify.com"
    )


class InvalidShopDomain(ClientInputError):
    code = "invalid_shop"
    default_message = "Invalid shop domain."


class MissingCallbackParameters(ClientInputError):
    code = "missing_parameters"
    default_message = "Missing required parameters."


class ShopNotInstalled(ClientInputError):
    code = "shop_not_installed"
    default_message = "Shop not installed."


class AuthenticationError(AuthFlowError):
    """Terminal failure for the current attempt; the client restarts at login."""

    code = "unauthorized"
    default_message = "Authentication failed."


class MissingSignature(AuthenticationError):
    code = "missing_hmac"
    default_message = "Missing hmac parameter."


class MalformedSignature(AuthenticationError):
    code = "malformed_hmac"
    default_message = "Invalid hmac signature."


class SignatureMismatch(AuthenticationError):
    code = "invalid_hmac"
    default_message = "Invalid hmac signature."


class InvalidState(AuthenticationError):
    code = "invalid_state"
    default_message = "Invalid or expired state parameter."


class MissingSession(AuthenticationError):
    code = "missing_session"
    default_message = "Missing session."


class MalformedSessionToken(AuthenticationError):
    code = "malformed_session"
    default_message = "Invalid session format."


class InvalidSessionSignature(AuthenticationError):
    code = "invalid_session_signature"
    default_message = "Invalid session signature."


class InvalidSessionPayload(AuthenticationError):
    code = "invalid_session_payload"
    default_message = "Invalid session payload."


class SessionExpired(AuthenticationError):
    code = "session_expired"
    default_message = "Session expired."


class SessionDomainMismatch(AuthenticationError):
    code = "session_shop_mismatch"
    default_message = "Session does not belong to the requested shop."


class UpstreamError(AuthFlowError):
    """The identity provider failed or could not be reached."""

    code = "upstream_error"
    default_message = "Upstream service failed."


class StoreError(AuthFlowError):
    """A persistence collaborator failed; fatal for the current request."""

    code = "store_error"
    default_message = "Storage error."


class ShopNotFoundError(LookupError):
    """Raised by shop repositories when no record exists for a domain."""


__all__ = [
    "AuthFlowError",
    "AuthenticationError",
    "ClientInputError",
    "InvalidSessionPayload",
    "InvalidSessionSignature",
    "InvalidShopDomain",
    "InvalidState",
    "MalformedSessionToken",
    "MalformedSignature",
    "MissingCallbackParameters",
    "MissingSession",
    "MissingShopDomain",
    "MissingSignature",
    "SessionDomainMismatch",
    "SessionExpired",
    "ShopNotFoundError",
    "ShopNotInstalled",
    "SignatureMismatch",
    "StoreError",
    "UpstreamError",
]

"""
Compact, self-contained session tokens for the app_session cookie.

A token is ``base64url(json({"shop", "exp"})) + "." + hex(hmac_sha256)``, the
signature covering the encoded payload string. Verification needs nothing but
the session secret, so protected requests never touch a database.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import re
import time
from datetime import timedelta
from hashlib import sha256
from typing import Callable

from pydantic import BaseModel, Field, ValidationError

from app.core.errors import (
    InvalidSessionPayload,
    InvalidSessionSignature,
    MalformedSessionToken,
    SessionExpired,
)

_SEPARATOR = "."
_SIGNATURE_RE = re.compile(r"[0-9a-f]{64}")


class SessionClaims(BaseModel):
    """Claims carried inside a session token."""

    shop: str = Field(..., min_length=1)
    exp: int = Field(..., description="Absolute expiry, seconds since the epoch.")


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


class SessionCodec:
    """Sign and verify session tokens with a dedicated secret."""

    def __init__(
        self,
        secret: str,
        *,
        clock: Callable[[], float] = time.time,
        leeway_seconds: int = 0,
    ) -> None:
        if not secret:
            raise ValueError("Session secret must be provided.")
        self._secret = secret.encode("utf-8")
        self._clock = clock
        self._leeway = leeway_seconds

    def _mac(self, payload: str) -> bytes:
        return hmac.new(self._secret, payload.encode("ascii"), sha256).digest()

    def sign(self, shop: str, ttl: timedelta) -> str:
        """Issue a token asserting ``shop`` until ``now + ttl``."""
        claims = SessionClaims(
            shop=shop, exp=int(self._clock() + ttl.total_seconds())
        )
        serialized = json.dumps(
            claims.model_dump(), separators=(",", ":")
        ).encode("utf-8")
        payload = _b64encode(serialized)
        return f"{payload}{_SEPARATOR}{self._mac(payload).hex()}"

    def verify(self, token: str) -> str:
        """Return the shop asserted by ``token`` or raise an authentication error."""
        parts = token.split(_SEPARATOR)
        if len(parts) != 2:
            raise MalformedSessionToken()
        payload, signature_hex = parts

        if not _SIGNATURE_RE.fullmatch(signature_hex):
            raise InvalidSessionSignature()
        try:
            expected = self._mac(payload)
        except UnicodeEncodeError as exc:
            raise InvalidSessionSignature() from exc
        if not hmac.compare_digest(expected, bytes.fromhex(signature_hex)):
            raise InvalidSessionSignature()

        try:
            claims = SessionClaims.model_validate_json(_b64decode(payload))
        except (binascii.Error, ValueError, ValidationError) as exc:
            raise InvalidSessionPayload() from exc

        if self._clock() > claims.exp + self._leeway:
            raise SessionExpired()
        return claims.shop

    def __repr__(self) -> str:
        return f"SessionCodec(secret=***, leeway_seconds={self._leeway})"


__all__ = ["SessionClaims", "SessionCodec"]

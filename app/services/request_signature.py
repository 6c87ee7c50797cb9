"""
HMAC verification for platform-originated query strings.

The platform signs the decoded query parameters, minus the signature fields
themselves, as ``name=value`` pairs sorted by name and joined with ``&``.
Inside names and values ``%`` and ``&`` are percent-escaped, and ``=`` is
escaped in names as well, so that the joined message stays unambiguous.
"""

from __future__ import annotations

import hmac
import re
from hashlib import sha256
from typing import Iterable, List, Mapping, Tuple, Union

from app.core.errors import MalformedSignature, MissingSignature, SignatureMismatch

SIGNATURE_PARAM = "hmac"
LEGACY_SIGNATURE_PARAM = "signature"
_EXCLUDED_PARAMS = frozenset({SIGNATURE_PARAM, LEGACY_SIGNATURE_PARAM})

QueryParams = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def query_pairs(params: QueryParams) -> List[Tuple[str, str]]:
    if isinstance(params, Mapping):
        return [(str(key), str(value)) for key, value in params.items()]
    return [(str(key), str(value)) for key, value in params]


def _escape_value(value: str) -> str:
    return value.replace("%", "%25").replace("&", "%26")


def _escape_name(name: str) -> str:
    return _escape_value(name).replace("=", "%3D")


def canonical_message(params: QueryParams) -> str:
    """Build the exact message the platform feeds into its HMAC."""
    entries = [
        (_escape_name(name), _escape_value(value))
        for name, value in query_pairs(params)
        if name not in _EXCLUDED_PARAMS
    ]
    # Stable sort: repeated names keep the order they were received in.
    entries.sort(key=lambda entry: entry[0].encode("utf-8"))
    return "&".join(f"{name}={value}" for name, value in entries)


def compute_signature(params: QueryParams, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of the canonical message."""
    message = canonical_message(params)
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), sha256).hexdigest()


def _received_signature(pairs: List[Tuple[str, str]]) -> str:
    for name, value in pairs:
        if name == SIGNATURE_PARAM and value:
            return value
    return ""


def validate(params: QueryParams, secret: str) -> None:
    """Raise unless ``params`` carries a valid platform signature."""
    pairs = query_pairs(params)
    received = _received_signature(pairs)
    if not received:
        raise MissingSignature()
    if _HEX_RE.fullmatch(received) is None:
        raise MalformedSignature()
    try:
        received_digest = bytes.fromhex(received)
    except ValueError as exc:
        raise MalformedSignature() from exc

    expected_digest = hmac.new(
        secret.encode("utf-8"),
        canonical_message(pairs).encode("utf-8"),
        sha256,
    ).digest()
    if not hmac.compare_digest(expected_digest, received_digest):
        raise SignatureMismatch()


class RequestAuthenticator:
    """Bind the shared application secret to request signature checks."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Request signing secret must be provided.")
        self._secret = secret

    def validate(self, params: QueryParams) -> None:
        validate(params, self._secret)

    def sign(self, params: QueryParams) -> str:
        return compute_signature(params, self._secret)

    def __repr__(self) -> str:
        return "RequestAuthenticator(secret=***)"


__all__ = [
    "LEGACY_SIGNATURE_PARAM",
    "QueryParams",
    "RequestAuthenticator",
    "SIGNATURE_PARAM",
    "canonical_message",
    "query_pairs",
    "compute_signature",
    "validate",
]

"""Normalization and syntactic validation of tenant shop domains."""

from __future__ import annotations

import re
from typing import Optional, Tuple

from app.core.errors import InvalidShopDomain, MissingShopDomain

DEFAULT_SHOP_SUFFIX = "myshopify.com"

_LABEL = r"[a-z0-9][a-z0-9-]*"


class ShopDomainValidator:
    """Validate ``label(.label)*.<suffix>`` shop domains.

    The pattern is compiled once per instance; instances hold no mutable state
    and can be shared freely between requests.
    """

    def __init__(self, suffix: str = DEFAULT_SHOP_SUFFIX) -> None:
        cleaned = suffix.strip().strip(".").lower()
        if not cleaned:
            raise ValueError("Shop domain suffix must not be empty.")
        self._suffix = cleaned
        self._pattern = re.compile(
            rf"^{_LABEL}(?:\.{_LABEL})*\.{re.escape(cleaned)}$"
        )

    @property
    def suffix(self) -> str:
        return self._suffix

    def normalize_and_validate(self, raw: Optional[str]) -> Tuple[str, bool]:
        """Return the trimmed, lowercased domain and whether it is well formed."""
        if not raw:
            return "", False
        normalized = raw.strip().lower()
        if not normalized:
            return "", False
        return normalized, self._pattern.fullmatch(normalized) is not None

    def require(self, raw: Optional[str]) -> str:
        """Return the normalized domain or raise a client input error."""
        normalized, is_valid = self.normalize_and_validate(raw)
        if not normalized:
            raise MissingShopDomain()
        if not is_valid:
            raise InvalidShopDomain(
                f"Invalid shop domain. Must match *.{self._suffix}"
            )
        return normalized


__all__ = ["DEFAULT_SHOP_SUFFIX", "ShopDomainValidator"]

"""
Single-use OAuth state (nonce) records.

Every backing store must decide ``consume`` with one indivisible
check-and-remove so that replayed callbacks observe exactly one winner.
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Protocol, Tuple, runtime_checkable

NONCE_BYTES = 24


def generate_nonce() -> str:
    """Return a URL-safe random nonce carrying ``NONCE_BYTES`` of entropy."""
    return secrets.token_urlsafe(NONCE_BYTES)


@dataclass(frozen=True, slots=True)
class OAuthStateRecord:
    """Pending authorization attempt for one shop."""

    shop_domain: str
    nonce: str
    created_at: float
    expires_at: float

    def is_live(self, now: float) -> bool:
        return self.expires_at > now


@runtime_checkable
class StateStore(Protocol):
    """Contract shared by all OAuth state backends."""

    def create(self, shop: str, ttl: timedelta) -> str:
        """Persist a fresh nonce for ``shop`` valid for ``ttl`` and return it."""
        ...

    def consume(self, shop: str, nonce: str) -> bool:
        """Atomically remove a live ``(shop, nonce)`` record.

        Returns ``False`` when the record never existed, was already consumed
        or has expired. Backend failures raise ``StoreError``.
        """
        ...


class InMemoryStateStore:
    """Process-local state store, used in tests and single-process setups."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: Dict[Tuple[str, str], OAuthStateRecord] = {}
        self._lock = threading.Lock()

    def create(self, shop: str, ttl: timedelta) -> str:
        nonce = generate_nonce()
        now = self._clock()
        record = OAuthStateRecord(
            shop_domain=shop,
            nonce=nonce,
            created_at=now,
            expires_at=now + ttl.total_seconds(),
        )
        with self._lock:
            self._records[(shop, nonce)] = record
        return nonce

    def consume(self, shop: str, nonce: str) -> bool:
        with self._lock:
            record = self._records.pop((shop, nonce), None)
            if record is None:
                return False
            return record.is_live(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = [
    "InMemoryStateStore",
    "NONCE_BYTES",
    "OAuthStateRecord",
    "StateStore",
    "generate_nonce",
]

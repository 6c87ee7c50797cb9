"""SQLite-backed OAuth state store and shop repository."""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from app.core.errors import ShopNotFoundError, StoreError
from app.models.shop import Shop
from app.services.state_store import generate_nonce
from app.services.token_cipher import CredentialCipher

logger = logging.getLogger(__name__)


def _ensure_directory(db_path: Path) -> None:
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)


class _SQLiteDatabase:
    """Shared connection handling; every call opens its own connection."""

    _SCHEMA: tuple[str, ...] = ()

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        _ensure_directory(self._db_path)
        try:
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise StoreError("Failed to initialise storage schema.") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path,
            timeout=5.0,
            isolation_level="IMMEDIATE",
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            with conn:
                for statement in self._SCHEMA:
                    conn.execute(statement)
        finally:
            conn.close()


class SQLiteStateStore(_SQLiteDatabase):
    """OAuth state records consumed with a single conditional DELETE."""

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS oauth_states (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_domain TEXT NOT NULL,
            nonce TEXT NOT NULL UNIQUE,
            created_at REAL NOT NULL,
            expires_at REAL NOT NULL
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_oauth_states_expires_at
        ON oauth_states (expires_at)
        """,
    )

    def __init__(self, db_path: str, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        super().__init__(db_path)

    def create(self, shop: str, ttl: timedelta) -> str:
        nonce = generate_nonce()
        now = self._clock()
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO oauth_states (shop_domain, nonce, created_at, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (shop, nonce, now, now + ttl.total_seconds()),
                )
        except sqlite3.Error as exc:
            logger.error("Failed to persist OAuth state for %s: %s", shop, exc)
            raise StoreError("Failed to persist OAuth state.") from exc
        finally:
            conn.close()
        return nonce

    def consume(self, shop: str, nonce: str) -> bool:
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    DELETE FROM oauth_states
                    WHERE shop_domain = ? AND nonce = ? AND expires_at > ?
                    """,
                    (shop, nonce, self._clock()),
                )
                consumed = cursor.rowcount == 1
        except sqlite3.Error as exc:
            logger.error("Failed to consume OAuth state for %s: %s", shop, exc)
            raise StoreError("Failed to validate OAuth state.") from exc
        finally:
            conn.close()
        return consumed

    def prune_expired(self) -> int:
        """Delete expired records; housekeeping outside the request path."""
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM oauth_states WHERE expires_at <= ?",
                    (self._clock(),),
                )
                removed = cursor.rowcount
        except sqlite3.Error as exc:
            raise StoreError("Failed to prune OAuth state.") from exc
        finally:
            conn.close()
        return removed


class SQLiteShopRepository(_SQLiteDatabase):
    """Installed shops with their offline access token encrypted at rest."""

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS shops (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            shop_domain TEXT NOT NULL UNIQUE,
            offline_access_token TEXT NOT NULL,
            scopes TEXT NOT NULL DEFAULT '',
            installed_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    )

    def __init__(self, db_path: str, cipher: CredentialCipher) -> None:
        self._cipher = cipher
        super().__init__(db_path)

    def _to_shop(self, row: sqlite3.Row) -> Shop:
        try:
            access_token = self._cipher.decrypt(row["offline_access_token"])
        except ValueError as exc:
            logger.error(
                "Stored access token for %s cannot be decrypted with the current key.",
                row["shop_domain"],
            )
            raise StoreError("Failed to load shop.") from exc
        return Shop(
            id=row["id"],
            shop_domain=row["shop_domain"],
            access_token=access_token,
            scopes=row["scopes"],
            installed_at=datetime.fromisoformat(row["installed_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def get_by_domain(self, shop: str) -> Shop:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT id, shop_domain, offline_access_token, scopes,
                       installed_at, updated_at
                FROM shops
                WHERE shop_domain = ?
                LIMIT 1
                """,
                (shop,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError("Failed to load shop.") from exc
        finally:
            conn.close()
        if row is None:
            raise ShopNotFoundError(shop)
        return self._to_shop(row)

    def exists(self, shop: str) -> bool:
        """Whether ``shop`` is installed, without touching its credential."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM shops WHERE shop_domain = ? LIMIT 1", (shop,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError("Failed to load shop.") from exc
        finally:
            conn.close()
        return row is not None

    def upsert(self, shop: str, access_token: str, scopes: str) -> Shop:
        now = datetime.now(timezone.utc).isoformat()
        encrypted = self._cipher.encrypt(access_token)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO shops (
                        shop_domain, offline_access_token, scopes,
                        installed_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(shop_domain) DO UPDATE SET
                        offline_access_token = excluded.offline_access_token,
                        scopes = excluded.scopes,
                        updated_at = excluded.updated_at
                    """,
                    (shop, encrypted, scopes, now, now),
                )
                row = conn.execute(
                    """
                    SELECT id, shop_domain, offline_access_token, scopes,
                           installed_at, updated_at
                    FROM shops
                    WHERE shop_domain = ?
                    """,
                    (shop,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Failed to save shop %s: %s", shop, exc)
            raise StoreError("Failed to save shop.") from exc
        finally:
            conn.close()
        return self._to_shop(row)


__all__ = ["SQLiteShopRepository", "SQLiteStateStore"]

"""
DynamoDB-backed OAuth state store.

Records are keyed by ``pk = shop#<domain>`` and ``sk = nonce#<nonce>``; a
conditional ``delete_item`` is the single atomic consume operation.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import StorageSettings
from app.core.errors import StoreError
from app.services.state_store import generate_nonce

logger = logging.getLogger(__name__)

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _keys(shop: str, nonce: str) -> dict[str, str]:
    return {"pk": f"shop#{shop}", "sk": f"nonce#{nonce}"}


class DynamoDBStateStore:
    """OAuth state records stored in a DynamoDB table with TTL enabled."""

    def __init__(self, table: Any, *, clock: Callable[[], float] = time.time) -> None:
        self._table = table
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "DynamoDBStateStore":
        if not settings.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb backend.")
        resource = boto3.resource("dynamodb", region_name=settings.region_name)
        return cls(resource.Table(settings.dynamodb_table_name))

    def create(self, shop: str, ttl: timedelta) -> str:
        nonce = generate_nonce()
        now = self._clock()
        expires_at = now + ttl.total_seconds()
        item = {
            **_keys(shop, nonce),
            "shop_domain": shop,
            "created_at": Decimal(str(now)),
            "expires_at": Decimal(str(expires_at)),
            # DynamoDB TTL attribute; lets the table collect abandoned nonces.
            "ttl": max(0, math.ceil(expires_at)),
        }
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to persist OAuth state for %s: %s", shop, exc)
            raise StoreError("Failed to persist OAuth state.") from exc
        return nonce

    def consume(self, shop: str, nonce: str) -> bool:
        try:
            self._table.delete_item(
                Key=_keys(shop, nonce),
                ConditionExpression="attribute_exists(pk) AND expires_at > :now",
                ExpressionAttributeValues={":now": Decimal(str(self._clock()))},
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED:
                return False
            logger.error("Failed to consume OAuth state for %s: %s", shop, exc)
            raise StoreError("Failed to validate OAuth state.") from exc
        except BotoCoreError as exc:
            logger.error("Failed to consume OAuth state for %s: %s", shop, exc)
            raise StoreError("Failed to validate OAuth state.") from exc
        return True


__all__ = ["DynamoDBStateStore"]

"""
Domain models for installed shop persistence.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Shop(BaseModel):
    """Represents a shop that completed the install flow."""

    id: int
    shop_domain: str = Field(..., description="Normalized tenant domain.")
    access_token: str = Field(..., repr=False)
    scopes: str = Field("", description="Comma-separated scopes granted at install.")
    installed_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["Shop"]

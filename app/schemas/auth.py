"""Response schemas for the install and session endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"


class DashboardResponse(BaseModel):
    """Installation details shown to an authenticated shop."""

    shop: str = Field(..., description="Normalized shop domain.")
    scopes: str = Field(..., description="Scopes granted at install time.")
    installed_at: datetime


class ErrorResponse(BaseModel):
    """Body rendered for every install flow failure."""

    error: str = Field(..., description="Stable machine-readable error code.")
    detail: str = Field(..., description="Client-safe description.")


__all__ = ["DashboardResponse", "ErrorResponse", "HealthResponse"]

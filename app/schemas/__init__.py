"""Public schema exports."""

from .auth import DashboardResponse, ErrorResponse, HealthResponse

__all__ = [
    "DashboardResponse",
    "ErrorResponse",
    "HealthResponse",
]

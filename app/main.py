"""
FastAPI application entrypoint for the shop install/auth service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.errors import (
    AuthenticationError,
    AuthFlowError,
    ClientInputError,
    ShopNotInstalled,
    StoreError,
    UpstreamError,
)
from app.core.logging import configure_logging
from app.schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _status_for(exc: AuthFlowError) -> HTTPStatus:
    if isinstance(exc, ShopNotInstalled):
        return HTTPStatus.NOT_FOUND
    if isinstance(exc, ClientInputError):
        return HTTPStatus.BAD_REQUEST
    if isinstance(exc, AuthenticationError):
        return HTTPStatus.UNAUTHORIZED
    if isinstance(exc, UpstreamError):
        return HTTPStatus.BAD_GATEWAY
    return HTTPStatus.INTERNAL_SERVER_ERROR


async def handle_auth_flow_error(request: Request, exc: AuthFlowError) -> JSONResponse:
    """Render structured install flow errors as JSON."""
    status = _status_for(exc)
    if isinstance(exc, StoreError):
        logger.error("Storage failure on %s: %s", request.url.path, exc.message)
    body = ErrorResponse(error=exc.code, detail=exc.message)
    return JSONResponse(status_code=status, content=body.model_dump())


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Shop Install Auth",
        version="0.1.0",
        description="OAuth install, request signature and session endpoints.",
    )
    app.add_exception_handler(AuthFlowError, handle_auth_flow_error)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]

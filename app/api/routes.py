"""
FastAPI routes for the shop install/auth service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Query, Request
from fastapi.responses import RedirectResponse

from app.dependencies import (
    SessionCookiePolicy,
    get_install_flow,
    get_session_cookie_policy,
)
from app.schemas import DashboardResponse, HealthResponse
from app.services import FlowOutcome, InstallFlow

router = APIRouter()
logger = logging.getLogger(__name__)


def _redirect(outcome: FlowOutcome, cookie: SessionCookiePolicy) -> RedirectResponse:
    response = RedirectResponse(url=outcome.redirect_url, status_code=HTTPStatus.FOUND)
    if outcome.session_token:
        response.set_cookie(
            key=cookie.name,
            value=outcome.session_token,
            max_age=cookie.max_age,
            path=cookie.path,
            secure=cookie.secure,
            httponly=cookie.httponly,
            samesite=cookie.samesite,
        )
    return response


@router.get("/health", status_code=HTTPStatus.OK, response_model=HealthResponse)
async def healthcheck(
    flow: Annotated[InstallFlow, Depends(get_install_flow)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return flow.health()


@router.get("/login")
async def login(
    request: Request,
    flow: Annotated[InstallFlow, Depends(get_install_flow)],
    cookie: Annotated[SessionCookiePolicy, Depends(get_session_cookie_policy)],
) -> RedirectResponse:
    """
    Start the install flow, or re-enter the dashboard for an installed shop.

    Every received query parameter is forwarded so the platform signature,
    when present, is checked against the full parameter set.
    """
    outcome = await flow.login(request.query_params.multi_items())
    return _redirect(outcome, cookie)


@router.get("/auth/callback")
async def oauth_callback(
    request: Request,
    flow: Annotated[InstallFlow, Depends(get_install_flow)],
    cookie: Annotated[SessionCookiePolicy, Depends(get_session_cookie_policy)],
) -> RedirectResponse:
    """Complete the OAuth exchange, store the shop and issue a session cookie."""
    outcome = await flow.callback(request.query_params.multi_items())
    return _redirect(outcome, cookie)


@router.get(
    "/dashboard", status_code=HTTPStatus.OK, response_model=DashboardResponse
)
def dashboard(
    flow: Annotated[InstallFlow, Depends(get_install_flow)],
    shop: str | None = Query(default=None),
    app_session: str | None = Cookie(default=None),
) -> DashboardResponse:
    """Return installation details for the shop proven by the session cookie."""
    installed = flow.dashboard(app_session, shop)
    return DashboardResponse(
        shop=installed.shop_domain,
        scopes=installed.scopes,
        installed_at=installed.installed_at,
    )

"""
FastAPI dependency utilities for injecting configuration.
"""

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends

from app.core.config import AppSettings, get_settings


@dataclass(frozen=True)
class SessionCookiePolicy:
    """Attributes of the app_session cookie."""

    name: str = "app_session"
    max_age: int = 900
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_session_cookie_policy(
    settings: AppSettings = Depends(get_app_settings),
) -> SessionCookiePolicy:
    """Cookie attributes for issued sessions, bounded by the session TTL."""
    return SessionCookiePolicy(
        max_age=settings.oauth.session_ttl_seconds,
        secure=settings.security.cookie_secure,
    )


__all__ = [
    "SessionCookiePolicy",
    "get_app_settings",
    "get_session_cookie_policy",
]

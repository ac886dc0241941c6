"""HTTP Basic authentication for the admin dashboard and admin API."""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Optional

import structlog
from fastapi import HTTPException, Request

from hommemade.config import settings

logger = structlog.get_logger()

AUTH_CHALLENGE = 'Basic realm="Admin Dashboard"'


def decode_basic_auth(header: Optional[str]) -> Optional[tuple[str, str]]:
    """Split a Basic Authorization header into (username, password).

    The password may contain ':'; only the first one separates the parts.
    """
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[6:].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    username, password = decoded.split(":", 1)
    return username, password


def credentials_match(username: str, password: str, expected_user: str, expected_password: str) -> bool:
    """Constant-time comparison of both parts (both are always compared)."""
    user_ok = hmac.compare_digest(username.encode("utf-8"), expected_user.encode("utf-8"))
    password_ok = hmac.compare_digest(password.encode("utf-8"), expected_password.encode("utf-8"))
    return user_ok and password_ok


def is_authorized(header: Optional[str]) -> bool:
    credentials = decode_basic_auth(header)
    if credentials is None:
        return False
    return credentials_match(*credentials, settings.admin_username, settings.admin_password)


async def require_admin(request: Request) -> None:
    """FastAPI dependency guarding admin routes.

    With no credentials configured the routes are open in development only;
    every other environment refuses to serve them.
    """
    if not settings.has_admin_auth:
        if settings.environment == "development":
            logger.warning("admin_auth_not_configured", path=request.url.path)
            return
        logger.error("admin_auth_missing_in_production", environment=settings.environment)
        raise HTTPException(
            status_code=503,
            detail={
                "error": "Admin unavailable",
                "message": "Admin authentication not configured",
            },
        )

    if not is_authorized(request.headers.get("authorization")):
        logger.warning("admin_auth_failed", path=request.url.path)
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthorized", "message": "Admin authentication required"},
            headers={"WWW-Authenticate": AUTH_CHALLENGE},
        )

"""Shared API helpers for service wiring, authentication and responses."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request

from authcore.core.extensions import get_auth_settings, get_email_dispatcher
from authcore.services.sessions.service import SessionService

F = TypeVar("F", bound=Callable[..., Any])

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def get_session_service() -> SessionService:
    """Build a request-scoped :class:`SessionService` from app-wide components."""
    return SessionService.from_settings(get_auth_settings(), mailer=get_email_dispatcher())


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token.

    The token is read from the ``accessToken`` cookie, falling back to an
    ``Authorization: Bearer`` header. The user id lands in ``g.current_user_id``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = request.cookies.get(ACCESS_COOKIE) or _bearer_token()
        g.current_user_id = get_session_service().authenticate(token)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_user_id() -> int:
    return int(g.current_user_id)


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""
    response = jsonify(payload)
    response.status_code = status
    return response


def envelope(data: Any, message: str, *, status: int = 200) -> Response:
    return json_response({"data": data, "message": message}, status=status)


def _cookie_kwargs() -> dict[str, Any]:
    return {
        "httponly": True,
        "secure": bool(current_app.config.get("AUTH_COOKIE_SECURE", True)),
        "samesite": "Lax",
        "path": "/",
    }


def set_auth_cookies(
    response: Response,
    *,
    access_token: str,
    access_expires_at: datetime,
    refresh_token: str | None = None,
    refresh_expires_at: datetime | None = None,
) -> Response:
    """Attach HTTP-only session cookies; the refresh cookie only when given."""
    response.set_cookie(ACCESS_COOKIE, access_token, expires=access_expires_at, **_cookie_kwargs())
    if refresh_token is not None:
        response.set_cookie(
            REFRESH_COOKIE, refresh_token, expires=refresh_expires_at, **_cookie_kwargs()
        )
    return response


def clear_auth_cookies(response: Response) -> Response:
    kwargs = _cookie_kwargs()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path=kwargs["path"],
            secure=kwargs["secure"],
            httponly=True,
            samesite=kwargs["samesite"],
        )
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request.endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]

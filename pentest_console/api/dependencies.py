"""FastAPI dependencies shared across the console API."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status

from ..auth import SessionRecord, StoredUser, sign_session_id, unsign_session_id
from ..core import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    """Return the service container attached to the running application."""

    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialised",
        )
    return services


def _cookie_options(services: ServiceContainer) -> dict:
    return {
        "path": "/",
        "httponly": True,
        "samesite": "strict",
        "secure": bool(services.config.is_production),
    }


def set_session_cookie(response: Response, services: ServiceContainer, session: SessionRecord) -> None:
    """Attach the signed session id to ``response``."""

    response.set_cookie(
        services.config.session_cookie_name,
        sign_session_id(session.sid, services.config.session_secret),
        max_age=services.sessions.max_age_seconds,
        **_cookie_options(services),
    )


def carry_session_cookie(source: Response, target: Response) -> Response:
    """Copy the refreshed session cookie onto a response the route builds itself."""

    for name, value in source.raw_headers:
        if name == b"set-cookie":
            target.raw_headers.append((name, value))
    return target


def clear_session_cookie(response: Response, services: ServiceContainer) -> None:
    """Expire the session cookie with the same name, path and security flags it was set with."""

    response.delete_cookie(services.config.session_cookie_name, **_cookie_options(services))


def resolve_session(services: ServiceContainer, cookie_value: Optional[str]) -> tuple[SessionRecord, StoredUser]:
    """
    Map a raw cookie value onto its session record and user.

    Raises:
        HTTPException: 401 when the cookie is missing, tampered with, expired,
            or points at a user that no longer exists
    """

    sid = unsign_session_id(cookie_value, services.config.session_secret)
    if not sid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    session = services.sessions.get(sid)
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    user = services.auth.get_user_by_id(session.user_id)
    if user is None:
        services.sessions.destroy(sid)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session invalid")

    return session, user


def get_session_cookie(request: Request, services: ServiceContainer = Depends(get_services)) -> Optional[str]:
    return request.cookies.get(services.config.session_cookie_name)


def require_auth(
    response: Response,
    cookie_value: Optional[str] = Depends(get_session_cookie),
    services: ServiceContainer = Depends(get_services),
) -> StoredUser:
    """Resolve the logged-in user and slide the session expiry forward."""

    session, user = resolve_session(services, cookie_value)
    services.sessions.touch(session.sid)
    set_session_cookie(response, services, session)
    return user


def require_admin(user: StoredUser = Depends(require_auth)) -> StoredUser:
    """Like :func:`require_auth` but additionally requires the admin flag."""

    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


__all__ = [
    "carry_session_cookie",
    "clear_session_cookie",
    "get_services",
    "get_session_cookie",
    "require_admin",
    "require_auth",
    "resolve_session",
    "set_session_cookie",
]

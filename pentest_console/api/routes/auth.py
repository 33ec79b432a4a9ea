"""Login, logout and user management endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...auth import StoredUser, UserConflictError, UserDeletionError, UserResponse, unsign_session_id
from ...core import ServiceContainer
from ...logger import log
from ..dependencies import (
    clear_session_cookie,
    get_services,
    get_session_cookie,
    require_admin,
    require_auth,
    set_session_cookie,
)
from ..schemas import CreateUserRequest, LoginRequest

router = APIRouter()


@router.post("/login", status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    response: Response,
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Verify credentials, persist a session and set the session cookie."""

    user = services.auth.verify_password(payload.username, payload.password)
    if user is None:
        log(f"[auth] failed login for {payload.username!r}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    session = services.sessions.create(user.id, user.username, user.is_admin)
    set_session_cookie(response, services, session)
    log(f"[auth] {user.username} logged in")
    return {"success": True, "user": UserResponse.from_stored(user).to_payload()}


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    cookie_value: Optional[str] = Depends(get_session_cookie),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    sid = unsign_session_id(cookie_value, services.config.session_secret)
    if sid:
        services.sessions.destroy(sid)
    clear_session_cookie(response, services)
    return {"success": True}


@router.get("/me", status_code=status.HTTP_200_OK)
def get_me(user: StoredUser = Depends(require_auth)) -> Dict[str, Any]:
    return {"user": UserResponse.from_stored(user).to_payload()}


@router.get("/users", status_code=status.HTTP_200_OK)
def list_users(
    _admin: StoredUser = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    return {"users": [user.to_payload() for user in services.auth.list_users()]}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: CreateUserRequest,
    admin: StoredUser = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Create a console user on behalf of an admin."""

    try:
        user = services.auth.create_user(
            payload.username,
            payload.password,
            email=payload.email,
            is_admin=payload.isAdmin,
            created_by=admin.id,
        )
    except UserConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    log(f"[auth] {admin.username} created user {user.username}", admin=user.is_admin)
    return {"user": user.to_payload()}


@router.delete("/users/{user_id}", status_code=status.HTTP_200_OK)
def delete_user(
    user_id: str,
    admin: StoredUser = Depends(require_admin),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    try:
        deleted = services.auth.delete_user(user_id, acting_user_id=admin.id)
    except UserDeletionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    services.sessions.destroy_for_user(user_id)
    return {"success": True}

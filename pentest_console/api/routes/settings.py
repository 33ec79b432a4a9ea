"""Provider API key and router settings endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ...auth import StoredUser
from ...core import ServiceContainer
from ...services import UnknownProviderError, verify_api_key
from ..dependencies import get_services, require_auth
from ..schemas import ApiKeyCheckRequest, UpdateApiKeysRequest, UpdateRouterRequest

router = APIRouter()
logger = logging.getLogger(__name__)


def _persist_failed() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to persist settings",
    )


@router.get("", status_code=status.HTTP_200_OK)
def get_settings(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Return the current settings with every API key masked."""

    return {
        "apiKeys": services.settings.masked_api_keys(),
        "routerDefault": services.settings.router_default,
        "hasAnthropicKey": services.settings.has_anthropic_key(),
    }


@router.put("/api-keys", status_code=status.HTTP_200_OK)
def update_api_keys(
    payload: UpdateApiKeysRequest,
    user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Update only the keys present in the body; an empty string clears a key."""

    updates = payload.model_dump(exclude_unset=True)
    try:
        services.settings.set_api_keys(updates)
    except OSError as exc:
        raise _persist_failed() from exc

    logger.info("User %s updated API keys: %s", user.username, ", ".join(sorted(updates)) or "none")
    return {"success": True, "apiKeys": services.settings.masked_api_keys()}


@router.put("/router", status_code=status.HTTP_200_OK)
def update_router(
    payload: UpdateRouterRequest,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    try:
        services.settings.set_router_default(payload.routerDefault)
    except OSError as exc:
        raise _persist_failed() from exc
    return {"success": True}


@router.post("/test-key", status_code=status.HTTP_200_OK)
def check_api_key(
    payload: ApiKeyCheckRequest,
    _user: StoredUser = Depends(require_auth),
) -> Dict[str, Any]:
    try:
        valid, error = verify_api_key(payload.provider, payload.apiKey)
    except UnknownProviderError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"valid": valid, "error": error}

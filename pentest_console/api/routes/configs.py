"""YAML pipeline configuration endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ...auth import StoredUser
from ...core import ServiceContainer
from ...logger import log
from ...services import InvalidConfigNameError
from ..dependencies import get_services, require_auth
from ..schemas import SaveConfigRequest

router = APIRouter()


@router.get("", status_code=status.HTTP_200_OK)
def list_configs(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    return {"configs": [summary.to_payload() for summary in services.configs.list_configs()]}


@router.get("/{name}", status_code=status.HTTP_200_OK)
def get_config(
    name: str,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Return the parsed and raw document with credentials masked."""

    loaded = services.configs.get_config(name)
    if loaded is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Config not found")

    config, raw = loaded
    return {"name": name, "config": config, "raw": raw}


@router.put("/{name}", status_code=status.HTTP_200_OK)
def save_config(
    name: str,
    payload: SaveConfigRequest,
    user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    try:
        error = services.configs.save_config(name, payload.content)
    except InvalidConfigNameError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

    log(f"[configs] {user.username} saved {name}")
    return {"success": True}


@router.delete("/{name}", status_code=status.HTTP_200_OK)
def delete_config(
    name: str,
    user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    if not services.configs.delete_config(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Config not found")

    log(f"[configs] {user.username} deleted {name}")
    return {"success": True}

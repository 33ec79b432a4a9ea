"""Endpoints controlling the background pipeline worker."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ...auth import StoredUser
from ...core import ServiceContainer
from ...worker import WorkerError
from ..dependencies import get_services, require_auth

router = APIRouter()


@router.get("/status", status_code=status.HTTP_200_OK)
def get_worker_status(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    return services.worker.status()


@router.post("/start", status_code=status.HTTP_200_OK)
async def start_worker(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Spawn the worker; failures are reported to the client, never raised past the route."""

    try:
        worker_status = await services.worker.start()
    except WorkerError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True, "status": worker_status}


@router.post("/stop", status_code=status.HTTP_200_OK)
async def stop_worker(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    try:
        await services.worker.stop()
    except WorkerError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True}


@router.get("/logs", status_code=status.HTTP_200_OK)
def get_worker_logs(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    return {"logs": services.worker.recent_logs()}

"""Pipeline workflow endpoints: start, monitor, list, cancel and deliverables."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool

from ...auth import StoredUser
from ...core import PipelineInput, ServiceContainer, WorkflowEngineUnavailableError
from ...core.workflows import build_workflow_id
from ...services import InvalidConfigNameError, merge_workflow_listing
from ..dependencies import carry_session_cookie, get_services, require_auth
from ..schemas import StartWorkflowRequest

router = APIRouter()
logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    ".md": "text/markdown",
    ".json": "application/json",
}


def _engine_unavailable(exc: WorkflowEngineUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def content_type_for(path: str) -> str:
    lowered = path.lower()
    for suffix, media_type in _CONTENT_TYPES.items():
        if lowered.endswith(suffix):
            return media_type
    return "text/plain"


@router.post("", status_code=status.HTTP_200_OK)
async def start_workflow(
    payload: StartWorkflowRequest,
    user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Start a pentest pipeline run against ``webUrl`` using the repository at ``repoPath``."""

    web_url = payload.webUrl
    config_path = None
    if payload.configName:
        try:
            config_path = str(services.configs.get_config_path(payload.configName))
        except InvalidConfigNameError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    pipeline_input = PipelineInput(
        web_url=web_url,
        repo_path=payload.repoPath,
        config_path=config_path,
        output_path=payload.outputPath,
        pipeline_testing_mode=payload.pipelineTestingMode,
        workflow_id=build_workflow_id(web_url),
    )

    try:
        workflow_id = await services.workflows.start_workflow(pipeline_input)
    except WorkflowEngineUnavailableError as exc:
        raise _engine_unavailable(exc) from exc
    except Exception as exc:
        logger.exception("Failed to start workflow for %s", web_url)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start workflow",
        ) from exc

    logger.info("User %s started workflow %s", user.username, workflow_id)
    return {"workflowId": workflow_id, "status": "started", "monitorUrl": f"/workflows/{workflow_id}"}


@router.get("", status_code=status.HTTP_200_OK)
async def list_workflows(
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    live = await services.workflows.list_workflows()
    sessions = await run_in_threadpool(services.audit.list_sessions)
    return {"workflows": merge_workflow_listing(live, sessions, now_ms=int(time.time() * 1000))}


@router.get("/{workflow_id}", status_code=status.HTTP_200_OK)
async def get_workflow(
    workflow_id: str,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    """Live progress from the engine, or the archived outcome once the engine has forgotten the run."""

    has_deliverables = bool(await run_in_threadpool(services.audit.list_deliverables, workflow_id))
    try:
        progress = await services.workflows.get_progress(workflow_id)
    except Exception as exc:
        logger.warning("Progress query failed for %s: %s", workflow_id, exc)
        if await run_in_threadpool(services.audit.get_session_metrics, workflow_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not found") from exc
        return {
            "workflowId": workflow_id,
            "status": "completed",
            "error": None,
            "hasDeliverables": True,
        }

    result = dict(progress or {})
    result.setdefault("workflowId", workflow_id)
    result["hasDeliverables"] = has_deliverables
    return result


@router.get("/{workflow_id}/session", status_code=status.HTTP_200_OK)
def get_workflow_session(
    workflow_id: str,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    session = services.audit.get_session_metrics(workflow_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.get("/{workflow_id}/deliverables", status_code=status.HTTP_200_OK)
def list_deliverables(
    workflow_id: str,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, Any]:
    return {"deliverables": [item.to_payload() for item in services.audit.list_deliverables(workflow_id)]}


@router.get("/{workflow_id}/deliverables/{file_path:path}")
def get_deliverable(
    workflow_id: str,
    file_path: str,
    response: Response,
    _user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    content = services.audit.get_deliverable_content(workflow_id, file_path)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Deliverable not found")
    return carry_session_cookie(response, Response(content=content, media_type=content_type_for(file_path)))


@router.post("/{workflow_id}/cancel", status_code=status.HTTP_200_OK)
async def cancel_workflow(
    workflow_id: str,
    user: StoredUser = Depends(require_auth),
    services: ServiceContainer = Depends(get_services),
) -> Dict[str, bool]:
    try:
        await services.workflows.cancel_workflow(workflow_id)
    except WorkflowEngineUnavailableError as exc:
        raise _engine_unavailable(exc) from exc
    except Exception as exc:
        logger.exception("Failed to cancel workflow %s", workflow_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel workflow",
        ) from exc

    logger.info("User %s cancelled workflow %s", user.username, workflow_id)
    return {"success": True}

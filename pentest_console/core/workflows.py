"""
Thin adapter over the Temporal client used to drive pentest pipeline runs.

The pipeline itself is executed by the worker process; this module only
starts, queries, lists and cancels workflow executions.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from temporalio.client import Client

from ..logger import log


logger = logging.getLogger(__name__)

TASK_QUEUE = "shannon-pipeline"
WORKFLOW_TYPE = "pentestPipelineWorkflow"
PROGRESS_QUERY = "getProgress"

_HOSTNAME_UNSAFE_RE = re.compile(r"[^A-Za-z0-9-]")

_STATUS_MAP = {
    "RUNNING": "running",
    "COMPLETED": "completed",
    "FAILED": "failed",
    "TERMINATED": "failed",
    "CANCELED": "failed",
    "CANCELLED": "failed",
}


class WorkflowEngineUnavailableError(RuntimeError):
    """Raised when the Temporal service cannot be reached."""


@dataclass
class PipelineInput:
    web_url: str
    repo_path: str
    config_path: Optional[str] = None
    output_path: Optional[str] = None
    pipeline_testing_mode: bool = False
    workflow_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """camelCase document consumed by the pipeline workflow."""
        payload: Dict[str, Any] = {
            "webUrl": self.web_url,
            "repoPath": self.repo_path,
            "pipelineTestingMode": self.pipeline_testing_mode,
        }
        if self.config_path:
            payload["configPath"] = self.config_path
        if self.output_path:
            payload["outputPath"] = self.output_path
        if self.workflow_id:
            payload["workflowId"] = self.workflow_id
        return payload


def sanitize_hostname(url: str) -> str:
    """Hostname of ``url`` reduced to letters, digits and hyphens, or ``"unknown"``."""
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return "unknown"
    if not hostname:
        return "unknown"
    return _HOSTNAME_UNSAFE_RE.sub("-", hostname)


def build_workflow_id(web_url: str, *, now_ms: Optional[int] = None) -> str:
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{sanitize_hostname(web_url)}-{timestamp}"


def map_execution_status(status: Any) -> str:
    """Collapse a Temporal execution status into running/completed/failed/unknown."""
    name = getattr(status, "name", None) or (status if isinstance(status, str) else "")
    return _STATUS_MAP.get(str(name).upper(), "unknown")


def _to_millis(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


class WorkflowClient:
    """Starts, queries, lists and cancels pipeline workflows."""

    def __init__(self, address: str, *, namespace: str = "default") -> None:
        self.address = address
        self.namespace = namespace
        self._client: Optional[Client] = None
        self._connect_lock: Optional[asyncio.Lock] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Connect once; concurrent callers share the same attempt."""
        if self._client is not None:
            return
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self._client is not None:
                return
            log(f"[temporal] connecting to {self.address}")
            try:
                self._client = await Client.connect(self.address, namespace=self.namespace)
            except Exception as exc:
                logger.error("Failed to connect to Temporal at %s: %s", self.address, exc)
                raise WorkflowEngineUnavailableError(f"Temporal is unreachable at {self.address}") from exc
            log("[temporal] connected")

    async def _get_client(self) -> Client:
        if self._client is None:
            await self.connect()
        return self._client

    async def start_workflow(self, pipeline_input: PipelineInput) -> str:
        """Start a pipeline run and return its workflow id."""
        client = await self._get_client()
        workflow_id = pipeline_input.workflow_id or build_workflow_id(pipeline_input.web_url)
        pipeline_input.workflow_id = workflow_id

        await client.start_workflow(
            WORKFLOW_TYPE,
            pipeline_input.to_payload(),
            id=workflow_id,
            task_queue=TASK_QUEUE,
        )
        log(f"[temporal] started workflow {workflow_id}")
        return workflow_id

    async def get_progress(self, workflow_id: str) -> Dict[str, Any]:
        client = await self._get_client()
        handle = client.get_workflow_handle(workflow_id)
        return await handle.query(PROGRESS_QUERY)

    async def list_workflows(self) -> List[Dict[str, Any]]:
        """Summaries of every pipeline workflow; empty when the engine cannot be enumerated."""
        workflows: List[Dict[str, Any]] = []
        try:
            client = await self._get_client()
            async for execution in client.list_workflows(f'WorkflowType = "{WORKFLOW_TYPE}"'):
                start_time = _to_millis(execution.start_time) or int(time.time() * 1000)
                workflows.append(
                    {
                        "workflowId": execution.id,
                        "status": map_execution_status(execution.status),
                        "startTime": start_time,
                        "endTime": _to_millis(execution.close_time),
                    }
                )
        except Exception as exc:
            logger.error("Failed to list workflows: %s", exc)
            return []
        return workflows

    async def cancel_workflow(self, workflow_id: str) -> None:
        client = await self._get_client()
        handle = client.get_workflow_handle(workflow_id)
        await handle.cancel()
        log(f"[temporal] cancellation requested for {workflow_id}")


__all__ = [
    "PROGRESS_QUERY",
    "TASK_QUEUE",
    "WORKFLOW_TYPE",
    "PipelineInput",
    "WorkflowClient",
    "WorkflowEngineUnavailableError",
    "build_workflow_id",
    "map_execution_status",
    "sanitize_hostname",
]

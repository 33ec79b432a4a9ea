"""Unit tests for the Temporal workflow client adapter."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from temporalio.client import WorkflowExecutionStatus

from pentest_console.core import PipelineInput, WorkflowClient, WorkflowEngineUnavailableError, sanitize_hostname
from pentest_console.core import workflows as workflows_module
from pentest_console.core.workflows import (
    PROGRESS_QUERY,
    TASK_QUEUE,
    WORKFLOW_TYPE,
    build_workflow_id,
    map_execution_status,
)


class StubHandle:
    def __init__(self, client: "StubTemporalClient", workflow_id: str):
        self._client = client
        self.workflow_id = workflow_id

    async def query(self, name: str):
        self._client.queries.append((self.workflow_id, name))
        return {"workflowId": self.workflow_id, "status": "running", "currentPhase": "recon"}

    async def cancel(self):
        self._client.cancelled.append(self.workflow_id)


class StubTemporalClient:
    def __init__(self, executions: List[Any] | None = None, list_error: Exception | None = None):
        self.started: List[Dict[str, Any]] = []
        self.queries: List[tuple] = []
        self.cancelled: List[str] = []
        self.list_queries: List[str] = []
        self._executions = executions or []
        self._list_error = list_error

    async def start_workflow(self, workflow, arg, *, id, task_queue):
        self.started.append({"workflow": workflow, "arg": arg, "id": id, "task_queue": task_queue})

    def get_workflow_handle(self, workflow_id: str) -> StubHandle:
        return StubHandle(self, workflow_id)

    async def _iterate(self):
        for execution in self._executions:
            yield execution
        if self._list_error is not None:
            raise self._list_error

    def list_workflows(self, query: str):
        self.list_queries.append(query)
        return self._iterate()


def _client_with(stub: StubTemporalClient) -> WorkflowClient:
    client = WorkflowClient("localhost:7233")
    client._client = stub
    return client


def test_sanitize_hostname_keeps_only_safe_characters() -> None:
    sanitized = sanitize_hostname("https://My.Example.com:8443/x?y=1")

    assert sanitized == "my-example-com"
    assert all(char.isalnum() or char == "-" for char in sanitized)


@pytest.mark.parametrize("url", ["not a url", "", "http://[bad"])
def test_sanitize_hostname_falls_back_to_unknown(url: str) -> None:
    assert sanitize_hostname(url) == "unknown"


def test_build_workflow_id_appends_millis() -> None:
    assert build_workflow_id("https://app.example.com", now_ms=1700000000123) == "app-example-com-1700000000123"


@pytest.mark.parametrize(
    "status, expected",
    [
        (WorkflowExecutionStatus.RUNNING, "running"),
        (WorkflowExecutionStatus.COMPLETED, "completed"),
        (WorkflowExecutionStatus.FAILED, "failed"),
        (WorkflowExecutionStatus.TERMINATED, "failed"),
        (WorkflowExecutionStatus.CANCELED, "failed"),
        (WorkflowExecutionStatus.TIMED_OUT, "unknown"),
        (None, "unknown"),
    ],
)
def test_map_execution_status(status, expected: str) -> None:
    assert map_execution_status(status) == expected


def test_start_workflow_passes_camel_case_input() -> None:
    stub = StubTemporalClient()
    client = _client_with(stub)
    pipeline_input = PipelineInput(
        web_url="https://app.example.com",
        repo_path="/repos/app",
        config_path="/configs/app.yaml",
        pipeline_testing_mode=True,
    )

    workflow_id = asyncio.run(client.start_workflow(pipeline_input))

    assert workflow_id.startswith("app-example-com-")
    started = stub.started[0]
    assert started["workflow"] == WORKFLOW_TYPE
    assert started["task_queue"] == TASK_QUEUE
    assert started["id"] == workflow_id
    assert started["arg"] == {
        "webUrl": "https://app.example.com",
        "repoPath": "/repos/app",
        "configPath": "/configs/app.yaml",
        "pipelineTestingMode": True,
        "workflowId": workflow_id,
    }


def test_start_workflow_keeps_supplied_id() -> None:
    stub = StubTemporalClient()
    client = _client_with(stub)

    workflow_id = asyncio.run(
        client.start_workflow(PipelineInput(web_url="https://a.example.com", repo_path="/r", workflow_id="custom-1"))
    )

    assert workflow_id == "custom-1"
    assert "outputPath" not in stub.started[0]["arg"]


def test_get_progress_and_cancel_use_handle() -> None:
    stub = StubTemporalClient()
    client = _client_with(stub)

    progress = asyncio.run(client.get_progress("wf-1"))
    asyncio.run(client.cancel_workflow("wf-1"))

    assert progress["currentPhase"] == "recon"
    assert stub.queries == [("wf-1", PROGRESS_QUERY)]
    assert stub.cancelled == ["wf-1"]


def test_list_workflows_maps_executions() -> None:
    started = datetime(2024, 1, 1, tzinfo=timezone.utc)
    closed = datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)
    stub = StubTemporalClient(
        executions=[
            SimpleNamespace(id="wf-1", status=WorkflowExecutionStatus.COMPLETED, start_time=started, close_time=closed),
            SimpleNamespace(id="wf-2", status=WorkflowExecutionStatus.RUNNING, start_time=started, close_time=None),
        ]
    )

    workflows = asyncio.run(_client_with(stub).list_workflows())

    assert stub.list_queries == [f'WorkflowType = "{WORKFLOW_TYPE}"']
    assert workflows[0] == {
        "workflowId": "wf-1",
        "status": "completed",
        "startTime": int(started.timestamp() * 1000),
        "endTime": int(closed.timestamp() * 1000),
    }
    assert workflows[1]["status"] == "running"
    assert workflows[1]["endTime"] is None


def test_list_workflows_returns_empty_on_failure() -> None:
    stub = StubTemporalClient(
        executions=[SimpleNamespace(id="wf-1", status=WorkflowExecutionStatus.RUNNING, start_time=None, close_time=None)],
        list_error=RuntimeError("visibility unavailable"),
    )

    assert asyncio.run(_client_with(stub).list_workflows()) == []


def test_connect_failure_raises_engine_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_connect(address, namespace):
        raise RuntimeError("connection refused")

    monkeypatch.setattr(workflows_module, "Client", SimpleNamespace(connect=failing_connect))
    client = WorkflowClient("localhost:7233")

    with pytest.raises(WorkflowEngineUnavailableError):
        asyncio.run(client.connect())

    assert client.connected is False


def test_connect_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    async def fake_connect(address, namespace):
        calls.append((address, namespace))
        return StubTemporalClient()

    monkeypatch.setattr(workflows_module, "Client", SimpleNamespace(connect=fake_connect))
    client = WorkflowClient("temporal:7233", namespace="pentest")

    async def scenario():
        await client.connect()
        await client.connect()

    asyncio.run(scenario())

    assert calls == [("temporal:7233", "pentest")]
    assert client.connected is True

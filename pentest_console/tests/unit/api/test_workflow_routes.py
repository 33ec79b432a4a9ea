"""Tests for pipeline workflow routes."""

from __future__ import annotations

import asyncio
import json
import threading

import pytest
from fastapi import HTTPException, Response

from pentest_console.api.routes import workflows as workflow_routes
from pentest_console.api.schemas import StartWorkflowRequest
from pentest_console.core import WorkflowEngineUnavailableError


def _write_session(services, workflow_id: str, *, target: str = "https://app.example.com") -> None:
    session_dir = services.audit.audit_logs_dir / workflow_id
    (session_dir / "deliverables").mkdir(parents=True)
    (session_dir / "session.json").write_text(
        json.dumps(
            {
                "session": {"id": workflow_id, "targetUrl": target, "createdAt": "2024-01-01T00:00:00.000Z"},
                "metrics": {"total_duration_ms": 1000, "total_cost_usd": 0.5},
            }
        ),
        encoding="utf-8",
    )
    (session_dir / "deliverables" / "report.md").write_text("# Report", encoding="utf-8")
    (session_dir / "deliverables" / "findings.json").write_text('{"findings": []}', encoding="utf-8")
    (session_dir / "deliverables" / "notes.txt").write_text("notes", encoding="utf-8")


def _start(services, user, **fields):
    payload = StartWorkflowRequest(**{"webUrl": "https://app.example.com", "repoPath": "/repos/app", **fields})
    return asyncio.run(workflow_routes.start_workflow(payload, user=user, services=services))


def test_start_workflow_returns_monitor_url(services, admin) -> None:
    result = _start(services, admin, pipelineTestingMode=True)

    assert result["status"] == "started"
    assert result["workflowId"].startswith("app-example-com-")
    assert result["monitorUrl"] == f"/workflows/{result['workflowId']}"
    started = services.workflows.started[0]
    assert started.repo_path == "/repos/app"
    assert started.pipeline_testing_mode is True
    assert started.config_path is None


def test_start_workflow_passes_web_url_through_unchanged(services, admin) -> None:
    _start(services, admin, webUrl="https://Example.com")

    assert services.workflows.started[0].web_url == "https://Example.com"


def test_start_workflow_resolves_config_name(services, admin) -> None:
    services.configs.configs_dir.mkdir(parents=True)
    (services.configs.configs_dir / "app.yml").write_text("rules: {}\n", encoding="utf-8")

    _start(services, admin, configName="app")

    assert services.workflows.started[0].config_path == str(services.configs.configs_dir / "app.yml")


def test_start_workflow_rejects_bad_config_name(services, admin) -> None:
    with pytest.raises(HTTPException) as exc:
        _start(services, admin, configName="../etc/passwd")

    assert exc.value.status_code == 400


def test_start_workflow_requires_url_and_repo() -> None:
    with pytest.raises(ValueError):
        StartWorkflowRequest(webUrl="not a url", repoPath="/repos/app")
    with pytest.raises(ValueError):
        StartWorkflowRequest(webUrl="ftp://files.example.com", repoPath="/repos/app")
    with pytest.raises(ValueError):
        StartWorkflowRequest(webUrl="https://app.example.com", repoPath="   ")


def test_start_workflow_reports_unreachable_engine(services, admin) -> None:
    services.workflows.start_error = WorkflowEngineUnavailableError("Temporal is unreachable at localhost:7233")

    with pytest.raises(HTTPException) as exc:
        _start(services, admin)

    assert exc.value.status_code == 503


def test_start_workflow_hides_unexpected_errors(services, admin) -> None:
    services.workflows.start_error = RuntimeError("grpc exploded")

    with pytest.raises(HTTPException) as exc:
        _start(services, admin)

    assert exc.value.status_code == 500
    assert exc.value.detail == "Failed to start workflow"


def test_get_workflow_returns_live_progress(services, admin) -> None:
    services.workflows.progress["wf-1"] = {"workflowId": "wf-1", "status": "running", "currentPhase": "recon"}

    result = asyncio.run(workflow_routes.get_workflow("wf-1", _user=admin, services=services))

    assert result["currentPhase"] == "recon"
    assert result["hasDeliverables"] is False


def test_get_workflow_falls_back_to_audit_data(services, admin) -> None:
    _write_session(services, "wf-archived")

    result = asyncio.run(workflow_routes.get_workflow("wf-archived", _user=admin, services=services))

    assert result == {"workflowId": "wf-archived", "status": "completed", "error": None, "hasDeliverables": True}


def test_get_workflow_unknown_returns_404(services, admin) -> None:
    with pytest.raises(HTTPException) as exc:
        asyncio.run(workflow_routes.get_workflow("wf-missing", _user=admin, services=services))

    assert exc.value.status_code == 404


def test_list_workflows_merges_live_and_archived(services, admin) -> None:
    _write_session(services, "wf-archived", target="https://old.example.com")
    services.workflows.live = [{"workflowId": "wf-live", "status": "running", "startTime": 9_999_999_999_999, "endTime": None}]

    result = asyncio.run(workflow_routes.list_workflows(_user=admin, services=services))

    assert [item["workflowId"] for item in result["workflows"]] == ["wf-live", "wf-archived"]
    assert result["workflows"][1]["status"] == "completed"
    assert result["workflows"][1]["webUrl"] == "https://old.example.com"


def test_archive_reads_run_off_the_event_loop(services, admin, monkeypatch: pytest.MonkeyPatch) -> None:
    reader_threads = []

    def list_sessions():
        reader_threads.append(threading.get_ident())
        return []

    def list_deliverables(workflow_id):
        reader_threads.append(threading.get_ident())
        return []

    monkeypatch.setattr(services.audit, "list_sessions", list_sessions)
    monkeypatch.setattr(services.audit, "list_deliverables", list_deliverables)
    services.workflows.progress["wf-1"] = {"workflowId": "wf-1", "status": "running"}

    async def scenario():
        await workflow_routes.list_workflows(_user=admin, services=services)
        await workflow_routes.get_workflow("wf-1", _user=admin, services=services)
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())

    assert len(reader_threads) == 2
    assert loop_thread not in reader_threads


def test_session_route_returns_metrics_or_404(services, admin) -> None:
    _write_session(services, "wf-1")

    session = workflow_routes.get_workflow_session("wf-1", _user=admin, services=services)
    assert session["metrics"]["total_cost_usd"] == 0.5

    with pytest.raises(HTTPException) as exc:
        workflow_routes.get_workflow_session("wf-2", _user=admin, services=services)
    assert exc.value.status_code == 404


@pytest.mark.parametrize(
    "path, media_type",
    [
        ("deliverables/report.md", "text/markdown"),
        ("deliverables/findings.json", "application/json"),
        ("deliverables/notes.txt", "text/plain"),
    ],
)
def test_deliverable_content_types(services, admin, path: str, media_type: str) -> None:
    _write_session(services, "wf-1")

    response = workflow_routes.get_deliverable("wf-1", path, Response(), _user=admin, services=services)

    assert response.media_type == media_type
    assert response.body


def test_deliverable_carries_refreshed_session_cookie(services, admin) -> None:
    _write_session(services, "wf-1")
    dependency_response = Response()
    dependency_response.set_cookie("pentest_console.sid", "sid.signature", max_age=3600)

    response = workflow_routes.get_deliverable(
        "wf-1", "deliverables/report.md", dependency_response, _user=admin, services=services
    )

    assert response.headers["set-cookie"].startswith("pentest_console.sid=sid.signature")
    assert response.body == b"# Report"


def test_deliverable_traversal_is_not_found(services, admin) -> None:
    _write_session(services, "wf-1")
    _write_session(services, "wf-2")

    with pytest.raises(HTTPException) as exc:
        workflow_routes.get_deliverable("wf-1", "../wf-2/session.json", Response(), _user=admin, services=services)

    assert exc.value.status_code == 404


def test_list_deliverables(services, admin) -> None:
    _write_session(services, "wf-1")

    result = workflow_routes.list_deliverables("wf-1", _user=admin, services=services)

    assert {item["type"] for item in result["deliverables"]} == {"report"}
    assert len(result["deliverables"]) == 3


def test_cancel_workflow(services, admin) -> None:
    result = asyncio.run(workflow_routes.cancel_workflow("wf-1", user=admin, services=services))

    assert result == {"success": True}
    assert services.workflows.cancelled == ["wf-1"]

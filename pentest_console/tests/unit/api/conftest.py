"""Fixtures for route tests: real file-backed stores with stubbed engine and worker."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from pentest_console.auth import AuthManager, SessionStore, StoredUser
from pentest_console.core import ServiceContainer
from pentest_console.services import AuditStore, ConfigStore, SettingsService
from pentest_console.worker import WorkerAlreadyRunningError, WorkerNotRunningError


class StubWorkflows:
    def __init__(self) -> None:
        self.connected = True
        self.started: List[Any] = []
        self.cancelled: List[str] = []
        self.progress: Dict[str, Dict[str, Any]] = {}
        self.live: List[Dict[str, Any]] = []
        self.start_error: Exception | None = None

    async def connect(self) -> None:
        return None

    async def start_workflow(self, pipeline_input) -> str:
        if self.start_error is not None:
            raise self.start_error
        self.started.append(pipeline_input)
        return pipeline_input.workflow_id

    async def get_progress(self, workflow_id: str) -> Dict[str, Any]:
        if workflow_id not in self.progress:
            raise RuntimeError(f"workflow {workflow_id} not found")
        return self.progress[workflow_id]

    async def list_workflows(self) -> List[Dict[str, Any]]:
        return list(self.live)

    async def cancel_workflow(self, workflow_id: str) -> None:
        self.cancelled.append(workflow_id)


class StubWorker:
    def __init__(self) -> None:
        self.running = False
        self.log_lines: List[str] = ["[2024-01-01T00:00:00.000Z] Starting Temporal worker..."]

    def recent_logs(self, limit: int = 20) -> List[str]:
        return self.log_lines[-limit:]

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "pid": 4242 if self.running else None,
            "startedAt": None,
            "logs": self.recent_logs(),
        }

    async def start(self) -> Dict[str, Any]:
        if self.running:
            raise WorkerAlreadyRunningError()
        self.running = True
        return self.status()

    async def stop(self) -> None:
        if not self.running:
            raise WorkerNotRunningError()
        self.running = False

    async def shutdown(self) -> None:
        self.running = False


@pytest.fixture
def services(tmp_path: Path) -> ServiceContainer:
    config = SimpleNamespace(
        is_production=False,
        session_secret="test-secret",
        session_secret_generated=False,
        session_cookie_name="pentest_console.sid",
        admin_username="admin",
        admin_password="s3cret-pass",
        cors_origins=(),
        web_dist_dir=None,
        enable_logfire=False,
        logfire_token=None,
    )
    container = ServiceContainer(
        config=config,
        settings=SettingsService(tmp_path / "settings.json"),
        auth=AuthManager(tmp_path / "users.json", bcrypt_rounds=4),
        sessions=SessionStore(tmp_path / "sessions.db", max_age_seconds=3600),
        worker=StubWorker(),
        workflows=StubWorkflows(),
        configs=ConfigStore(tmp_path / "configs"),
        audit=AuditStore(tmp_path / "audit-logs"),
    )
    container.auth.initialize(config.admin_username, config.admin_password)
    container.settings.load()
    return container


@pytest.fixture
def admin(services: ServiceContainer) -> StoredUser:
    return services.auth.get_user_by_username("admin")


@pytest.fixture
def member(services: ServiceContainer) -> StoredUser:
    created = services.auth.create_user("member", "member-pass")
    return services.auth.get_user_by_id(created.id)


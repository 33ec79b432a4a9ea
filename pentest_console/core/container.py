"""Construction of the long-lived service objects shared by request handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..auth import AuthManager, SessionStore
from ..config import CONFIG, DEFAULT_WORKER_COMMAND
from ..logger import log
from ..services import AuditStore, ConfigStore, SettingsService
from ..worker import WorkerSupervisor
from ..worker.supervisor import parse_worker_command
from .workflows import WorkflowClient, WorkflowEngineUnavailableError


@dataclass
class ServiceContainer:
    """Everything a request handler may need, built once per process."""

    config: Any
    settings: SettingsService
    auth: AuthManager
    sessions: SessionStore
    worker: WorkerSupervisor
    workflows: WorkflowClient
    configs: ConfigStore
    audit: AuditStore

    async def startup(self) -> None:
        """Load persisted state and connect to the workflow engine."""
        self.auth.initialize(self.config.admin_username, self.config.admin_password)
        self.settings.load()
        self.sessions.purge_expired()
        try:
            await self.workflows.connect()
        except WorkflowEngineUnavailableError as exc:
            log(f"[startup] {exc}; workflow features will retry on demand")

    async def shutdown(self) -> None:
        await self.worker.shutdown()


def build_container(config: Optional[Any] = None) -> ServiceContainer:
    cfg = config or CONFIG

    settings = SettingsService(
        cfg.settings_file,
        env_defaults={
            "anthropic_api_key": cfg.anthropic_api_key,
            "openai_api_key": cfg.openai_api_key,
            "openrouter_api_key": cfg.openrouter_api_key,
            "router_default": cfg.router_default,
        },
    )
    worker = WorkerSupervisor(
        parse_worker_command(cfg.worker_command, DEFAULT_WORKER_COMMAND),
        cwd=cfg.pipeline_root,
        env_provider=settings.worker_env,
        extra_env={"TEMPORAL_ADDRESS": cfg.temporal_address},
        start_grace_seconds=cfg.worker_start_grace_seconds,
        stop_timeout_seconds=cfg.worker_stop_timeout_seconds,
    )

    return ServiceContainer(
        config=cfg,
        settings=settings,
        auth=AuthManager(cfg.users_file, bcrypt_rounds=cfg.bcrypt_rounds),
        sessions=SessionStore(cfg.session_db, max_age_seconds=cfg.session_max_age_seconds),
        worker=worker,
        workflows=WorkflowClient(cfg.temporal_address, namespace=cfg.temporal_namespace),
        configs=ConfigStore(cfg.configs_dir),
        audit=AuditStore(cfg.audit_logs_dir),
    )


__all__ = ["ServiceContainer", "build_container"]

"""Repository-wide pytest fixtures."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from pentest_console.config import reload_config


_ISOLATED_VARS = (
    "ADMIN_USERNAME",
    "ADMIN_PASSWORD",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "ROUTER_DEFAULT",
    "SESSION_SECRET",
    "WORKER_COMMAND",
    "WEB_DIST_DIR",
    "ENABLE_LOGFIRE",
)


@pytest.fixture(autouse=True)
def _set_default_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Point every persisted store at the test's temporary directory."""

    for name in _ISOLATED_VARS:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("PIPELINE_ROOT", str(tmp_path))
    monkeypatch.setenv("CONFIGS_DIR", str(tmp_path / "configs"))
    monkeypatch.setenv("AUDIT_LOGS_DIR", str(tmp_path / "audit-logs"))
    monkeypatch.setenv("USERS_FILE", str(tmp_path / "users.json"))
    monkeypatch.setenv("SETTINGS_FILE", str(tmp_path / "settings.json"))
    monkeypatch.setenv("SESSION_DB", str(tmp_path / "sessions.db"))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    reload_config()
    yield
    monkeypatch.undo()
    reload_config()

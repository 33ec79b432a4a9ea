"""Environment-driven runtime settings for the pentest console."""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from types import SimpleNamespace
from typing import Optional, Sequence, Tuple


def _env_str(
    name: str,
    default: Optional[str] = None,
    *,
    alias: Optional[str] = None,
    empty_to_none: bool = True,
) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    value = raw.strip()
    if not value and empty_to_none:
        return None if default is None else default
    return value if value else default


def _env_bool(name: str, default: bool, *, alias: Optional[str] = None) -> bool:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, *, alias: Optional[str] = None) -> float:
    raw = os.getenv(name)
    if raw is None and alias:
        raw = os.getenv(alias)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_tuple(name: str, default: Sequence[str]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return tuple(default)
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or tuple(default)


def _env_path(name: str, default: Path) -> Path:
    value = _env_str(name, None)
    return Path(value).expanduser() if value else default


class Settings(SimpleNamespace):
    """Simple attribute container used throughout the codebase."""


CONFIG = Settings()

DEFAULT_WORKER_COMMAND = ("node", "dist/temporal/worker.js")


def _compute_values() -> dict[str, object]:
    home = Path(os.path.expanduser("~"))
    cwd = Path.cwd()

    # -----------------------------------------------------------------------
    # RUNTIME ENVIRONMENT
    # -----------------------------------------------------------------------
    environment = _env_str("ENV", "dev", empty_to_none=False).lower()
    if environment not in {"dev", "prod", "test"}:
        environment = "prod"
    is_production = environment == "prod"

    api_host = _env_str("API_HOST", "127.0.0.1", empty_to_none=False)
    api_port = _env_int("API_PORT", _env_int("PORT", 3001))
    cors_origins = _env_tuple(
        "API_CORS_ORIGINS",
        () if is_production else ("http://localhost:5173", "http://localhost:3001"),
    )
    web_dist_dir = _env_str("WEB_DIST_DIR", None)

    # -----------------------------------------------------------------------
    # PIPELINE LOCATIONS
    # -----------------------------------------------------------------------
    pipeline_root = _env_path("PIPELINE_ROOT", cwd.parent)
    configs_dir = _env_path("CONFIGS_DIR", pipeline_root / "configs")
    audit_logs_dir = _env_path("AUDIT_LOGS_DIR", pipeline_root / "audit-logs")

    # -----------------------------------------------------------------------
    # LOCAL PERSISTENCE
    # -----------------------------------------------------------------------
    users_file = _env_path("USERS_FILE", home / ".pentest-console-users.json")
    settings_file = _env_path("SETTINGS_FILE", cwd / ".pentest-console-settings.json")
    session_db = _env_path("SESSION_DB", home / ".pentest-console-sessions.db")

    # -----------------------------------------------------------------------
    # SESSIONS & AUTH
    # -----------------------------------------------------------------------
    session_secret = _env_str("SESSION_SECRET", None)
    session_secret_generated = session_secret is None
    if session_secret is None:
        session_secret = secrets.token_hex(32)
    # SESSION_MAX_AGE is expressed in milliseconds.
    session_max_age_seconds = max(_env_int("SESSION_MAX_AGE", 86_400_000) // 1000, 1)
    session_cookie_name = _env_str("SESSION_COOKIE_NAME", "pentest_console.sid", empty_to_none=False)
    admin_username = _env_str("ADMIN_USERNAME", None)
    admin_password = _env_str("ADMIN_PASSWORD", None, empty_to_none=False)
    bcrypt_rounds = min(max(_env_int("BCRYPT_ROUNDS", 12), 4), 31)

    # -----------------------------------------------------------------------
    # PROVIDER KEYS (fallback when no settings file exists)
    # -----------------------------------------------------------------------
    anthropic_api_key = _env_str("ANTHROPIC_API_KEY", None)
    openai_api_key = _env_str("OPENAI_API_KEY", None)
    openrouter_api_key = _env_str("OPENROUTER_API_KEY", None)
    router_default = _env_str("ROUTER_DEFAULT", None)

    # -----------------------------------------------------------------------
    # WORKFLOW ENGINE & WORKER
    # -----------------------------------------------------------------------
    temporal_address = _env_str("TEMPORAL_ADDRESS", "localhost:7233", empty_to_none=False)
    temporal_namespace = _env_str("TEMPORAL_NAMESPACE", "default", empty_to_none=False)
    worker_command = _env_str("WORKER_COMMAND", None)
    worker_start_grace_seconds = _env_float("WORKER_START_GRACE_SECONDS", 1.0)
    worker_stop_timeout_seconds = _env_float("WORKER_STOP_TIMEOUT_SECONDS", 5.0)

    # -----------------------------------------------------------------------
    # LOGGING & OBSERVABILITY
    # -----------------------------------------------------------------------
    log_level = _env_str("LOG_LEVEL", "INFO", empty_to_none=False).upper()
    enable_logfire = _env_bool("ENABLE_LOGFIRE", False)
    logfire_token = _env_str("LOGFIRE_TOKEN", None)

    return {
        "environment": environment,
        "is_production": is_production,
        "api_host": api_host,
        "api_port": api_port,
        "cors_origins": cors_origins,
        "web_dist_dir": web_dist_dir,
        "pipeline_root": pipeline_root,
        "configs_dir": configs_dir,
        "audit_logs_dir": audit_logs_dir,
        "users_file": users_file,
        "settings_file": settings_file,
        "session_db": session_db,
        "session_secret": session_secret,
        "session_secret_generated": session_secret_generated,
        "session_max_age_seconds": session_max_age_seconds,
        "session_cookie_name": session_cookie_name,
        "admin_username": admin_username,
        "admin_password": admin_password,
        "bcrypt_rounds": bcrypt_rounds,
        "anthropic_api_key": anthropic_api_key,
        "openai_api_key": openai_api_key,
        "openrouter_api_key": openrouter_api_key,
        "router_default": router_default,
        "temporal_address": temporal_address,
        "temporal_namespace": temporal_namespace,
        "worker_command": worker_command,
        "worker_start_grace_seconds": worker_start_grace_seconds,
        "worker_stop_timeout_seconds": worker_stop_timeout_seconds,
        "log_level": log_level,
        "enable_logfire": enable_logfire,
        "logfire_token": logfire_token,
    }


def reload_config() -> None:
    CONFIG.__dict__.update(_compute_values())


def load_envs(global_dir: str) -> None:
    """Load environment variables from the project .env file and refresh CONFIG."""
    from dotenv import load_dotenv

    load_dotenv(os.path.join(global_dir, ".env"))
    reload_config()


# Load once on import so downstream modules can use CONFIG immediately.
reload_config()

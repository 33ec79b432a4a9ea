"""
JSON-file backed console settings (provider API keys and router default).

The file is loaded once at startup and rewritten wholesale on every update.
When it is missing or invalid, the provider keys fall back to environment
variables.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..logger import log


logger = logging.getLogger(__name__)

# Settings key -> environment variable handed to the worker process.
API_KEY_ENV_VARS: Dict[str, str] = {
    "anthropicApiKey": "ANTHROPIC_API_KEY",
    "openaiApiKey": "OPENAI_API_KEY",
    "openrouterApiKey": "OPENROUTER_API_KEY",
}


class ApiKeys(BaseModel):
    model_config = ConfigDict(extra="ignore")

    anthropicApiKey: Optional[str] = None
    openaiApiKey: Optional[str] = None
    openrouterApiKey: Optional[str] = None


class ConsoleSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    apiKeys: ApiKeys = Field(default_factory=ApiKeys)
    routerDefault: Optional[str] = None


def mask_api_key(value: Optional[str]) -> Optional[str]:
    """Hide all but the last four characters of a key."""
    if not value:
        return None
    if len(value) <= 8:
        return "****"
    return "****" + value[-4:]


class SettingsService:
    """Loads and persists the console settings singleton."""

    def __init__(
        self,
        settings_file: Path,
        *,
        env_defaults: Optional[Mapping[str, Optional[str]]] = None,
    ) -> None:
        self.settings_file = Path(settings_file)
        self._env_defaults = dict(env_defaults or {})
        self._settings = ConsoleSettings()
        self._loaded = False
        self._lock = threading.RLock()

    def _settings_from_env(self) -> ConsoleSettings:
        defaults = self._env_defaults
        return ConsoleSettings(
            apiKeys=ApiKeys(
                anthropicApiKey=defaults.get("anthropic_api_key") or None,
                openaiApiKey=defaults.get("openai_api_key") or None,
                openrouterApiKey=defaults.get("openrouter_api_key") or None,
            ),
            routerDefault=defaults.get("router_default") or None,
        )

    def load(self) -> None:
        with self._lock:
            if self._loaded:
                return

            try:
                raw = self.settings_file.read_text(encoding="utf-8")
                self._settings = ConsoleSettings.model_validate(json.loads(raw))
                log(f"[settings] loaded settings from {self.settings_file}")
            except FileNotFoundError:
                self._settings = self._settings_from_env()
            except (OSError, json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Settings file %s is invalid, using environment defaults: %s", self.settings_file, exc)
                self._settings = self._settings_from_env()

            self._loaded = True

    def save(self) -> None:
        payload = self._settings.model_dump(exclude_none=True)
        try:
            self.settings_file.parent.mkdir(parents=True, exist_ok=True)
            self.settings_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Failed to save settings to %s", self.settings_file)
            raise

    # --- accessors -------------------------------------------------------------
    @property
    def settings(self) -> ConsoleSettings:
        return self._settings

    @property
    def router_default(self) -> Optional[str]:
        return self._settings.routerDefault

    def api_keys(self) -> Dict[str, Optional[str]]:
        return self._settings.apiKeys.model_dump()

    def masked_api_keys(self) -> Dict[str, Optional[str]]:
        return {name: mask_api_key(value) for name, value in self.api_keys().items()}

    def has_anthropic_key(self) -> bool:
        return bool(self._settings.apiKeys.anthropicApiKey)

    # --- mutations -------------------------------------------------------------
    def set_api_keys(self, updates: Mapping[str, Optional[str]]) -> None:
        """Apply only the keys present in ``updates``; empty values clear a key."""
        with self._lock:
            for name in API_KEY_ENV_VARS:
                if name in updates:
                    setattr(self._settings.apiKeys, name, updates[name] or None)
            self.save()

    def set_router_default(self, value: Optional[str]) -> None:
        with self._lock:
            self._settings.routerDefault = value or None
            self.save()

    def worker_env(self) -> Dict[str, str]:
        """Environment variables to pass to the worker process."""
        env: Dict[str, str] = {}
        for name, env_var in API_KEY_ENV_VARS.items():
            value = getattr(self._settings.apiKeys, name)
            if value:
                env[env_var] = value
        if self._settings.routerDefault:
            env["ROUTER_DEFAULT"] = self._settings.routerDefault
        return env


__all__ = ["API_KEY_ENV_VARS", "ApiKeys", "ConsoleSettings", "SettingsService", "mask_api_key"]

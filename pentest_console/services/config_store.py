"""File-backed CRUD over the YAML pipeline configurations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


logger = logging.getLogger(__name__)

PRIMARY_EXTENSION = ".yaml"
ALTERNATE_EXTENSION = ".yml"
EXAMPLE_CONFIG_FILE = "example-config.yaml"
MASK = "********"

_CONFIG_NAME_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")
_PASSWORD_RE = re.compile(r"password:\s*['\"]?[^'\n]+['\"]?")
_TOTP_RE = re.compile(r"totp_secret:\s*['\"]?[^'\n]+['\"]?")


class InvalidConfigNameError(ValueError):
    """Raised for config names that could escape the configs directory."""


@dataclass(frozen=True)
class ConfigSummary:
    name: str
    path: str
    has_authentication: bool
    has_rules: bool
    last_modified: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "hasAuthentication": self.has_authentication,
            "hasRules": self.has_rules,
            "lastModified": self.last_modified,
        }


def is_valid_config_name(name: str) -> bool:
    return bool(name) and bool(_CONFIG_NAME_RE.match(name)) and ".." not in name


def mask_yaml_secrets(content: str) -> str:
    """Scrub password and totp_secret values from raw YAML text."""
    masked = _PASSWORD_RE.sub(f'password: "{MASK}"', content)
    return _TOTP_RE.sub(f'totp_secret: "{MASK}"', masked)


def mask_config_secrets(config: Any) -> Any:
    if not isinstance(config, dict):
        return config
    authentication = config.get("authentication")
    if not isinstance(authentication, dict):
        return config
    credentials = authentication.get("credentials")
    if not isinstance(credentials, dict):
        return config

    masked = dict(credentials)
    masked["password"] = MASK
    if credentials.get("totp_secret"):
        masked["totp_secret"] = MASK
    else:
        masked.pop("totp_secret", None)
    authentication["credentials"] = masked
    return config


def _has_rules(config: Dict[str, Any]) -> bool:
    rules = config.get("rules")
    if not isinstance(rules, dict):
        return False
    return bool(rules.get("avoid") or rules.get("focus"))


class ConfigStore:
    """Reads and writes named YAML documents under the configs directory."""

    def __init__(self, configs_dir: Path) -> None:
        self.configs_dir = Path(configs_dir)

    def _candidate_paths(self, name: str) -> Tuple[Path, Path]:
        if not is_valid_config_name(name):
            raise InvalidConfigNameError(f"Invalid config name: {name!r}")
        return (
            self.configs_dir / f"{name}{PRIMARY_EXTENSION}",
            self.configs_dir / f"{name}{ALTERNATE_EXTENSION}",
        )

    def _existing_path(self, name: str) -> Optional[Path]:
        for candidate in self._candidate_paths(name):
            if candidate.is_file():
                return candidate
        return None

    def list_configs(self) -> List[ConfigSummary]:
        configs: List[ConfigSummary] = []
        try:
            entries = sorted(self.configs_dir.iterdir())
        except OSError as exc:
            logger.error("Failed to list configs in %s: %s", self.configs_dir, exc)
            return configs

        for path in entries:
            if path.suffix not in (PRIMARY_EXTENSION, ALTERNATE_EXTENSION) or not path.is_file():
                continue
            if "schema" in path.name or path.name == EXAMPLE_CONFIG_FILE:
                continue

            try:
                parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
                modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except (OSError, yaml.YAMLError):
                logger.debug("Skipping unreadable config %s", path.name)
                continue

            document = parsed if isinstance(parsed, dict) else {}
            configs.append(
                ConfigSummary(
                    name=path.stem,
                    path=path.name,
                    has_authentication=bool(document.get("authentication")),
                    has_rules=_has_rules(document),
                    last_modified=modified.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                )
            )

        return sorted(configs, key=lambda item: item.name)

    def get_config(self, name: str) -> Optional[Tuple[Any, str]]:
        """Return ``(parsed, raw)`` with secrets masked in both, or None if missing."""
        try:
            path = self._existing_path(name)
        except InvalidConfigNameError:
            return None
        if path is None:
            return None

        try:
            raw = path.read_text(encoding="utf-8")
            config = yaml.safe_load(raw)
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to read config %s: %s", path, exc)
            return None

        return mask_config_secrets(config), mask_yaml_secrets(raw)

    def save_config(self, name: str, content: str) -> Optional[str]:
        """Validate and write ``content``. Returns an error message on failure."""
        try:
            yaml.safe_load(content)
        except yaml.YAMLError as exc:
            return str(exc)

        path = self._candidate_paths(name)[0]
        try:
            self.configs_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to write config %s: %s", path, exc)
            return str(exc)
        return None

    def delete_config(self, name: str) -> bool:
        try:
            candidates = self._candidate_paths(name)
        except InvalidConfigNameError:
            return False

        for candidate in candidates:
            try:
                candidate.unlink()
                return True
            except FileNotFoundError:
                continue
        return False

    def get_config_path(self, name: str) -> Path:
        """Path the pipeline should read for ``name`` (existing file preferred)."""
        existing = self._existing_path(name)
        return existing if existing is not None else self._candidate_paths(name)[0]


__all__ = [
    "ConfigStore",
    "ConfigSummary",
    "InvalidConfigNameError",
    "is_valid_config_name",
    "mask_config_secrets",
    "mask_yaml_secrets",
]

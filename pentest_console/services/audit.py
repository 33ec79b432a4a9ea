"""Read-only access to the per-workflow audit directories written by pipeline runs."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"

# Subdirectory -> deliverable type, in listing order.
DELIVERABLE_DIRS = (
    ("deliverables", "report"),
    ("agents", "log"),
    ("prompts", "prompt"),
)


class _SessionInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    createdAt: Optional[str] = None
    targetUrl: Optional[str] = None


class _SessionTotals(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_duration_ms: float = 0
    total_cost_usd: float = 0
    total_input_tokens: float = 0
    total_output_tokens: float = 0


class SessionMetrics(BaseModel):
    """Shape of ``session.json``; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    session: _SessionInfo = Field(default_factory=_SessionInfo)
    metrics: _SessionTotals = Field(default_factory=_SessionTotals)
    agents: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Deliverable:
    name: str
    path: str
    size: int
    type: str

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "path": self.path, "size": self.size, "type": self.type}


def is_safe_workflow_id(workflow_id: str) -> bool:
    return bool(workflow_id) and workflow_id not in {".", ".."} and "/" not in workflow_id and "\\" not in workflow_id


def iso_to_millis(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(parsed.timestamp() * 1000)


class AuditStore:
    """Lists audit sessions and serves their deliverables."""

    def __init__(self, audit_logs_dir: Path) -> None:
        self.audit_logs_dir = Path(audit_logs_dir)

    def _workflow_dir(self, workflow_id: str) -> Optional[Path]:
        if not is_safe_workflow_id(workflow_id):
            return None
        return self.audit_logs_dir / workflow_id

    def _read_session(self, session_dir: Path) -> Optional[SessionMetrics]:
        try:
            data = json.loads((session_dir / SESSION_FILE).read_text(encoding="utf-8"))
            return SessionMetrics.model_validate(data)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Invalid %s in %s: %s", SESSION_FILE, session_dir, exc)
            return None

    def list_sessions(self) -> List[Dict[str, Any]]:
        """One entry per workflow directory, newest first."""
        sessions: List[Dict[str, Any]] = []
        try:
            entries = list(self.audit_logs_dir.iterdir())
        except OSError as exc:
            logger.error("Failed to list sessions in %s: %s", self.audit_logs_dir, exc)
            return sessions

        for entry in entries:
            if not entry.is_dir() or entry.name.startswith("."):
                continue

            metrics = self._read_session(entry)
            if metrics is None:
                # session.json is not written until a run has progressed.
                sessions.append({"workflowId": entry.name})
                continue

            sessions.append(
                {
                    "workflowId": entry.name,
                    "targetUrl": metrics.session.targetUrl,
                    "createdAt": metrics.session.createdAt,
                    "metrics": {
                        "totalDuration": metrics.metrics.total_duration_ms,
                        "totalCost": metrics.metrics.total_cost_usd,
                    },
                }
            )

        sessions.sort(key=lambda item: iso_to_millis(item.get("createdAt")) or 0, reverse=True)
        return sessions

    def get_session_metrics(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        session_dir = self._workflow_dir(workflow_id)
        if session_dir is None:
            return None
        try:
            return json.loads((session_dir / SESSION_FILE).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None

    def list_deliverables(self, workflow_id: str) -> List[Deliverable]:
        session_dir = self._workflow_dir(workflow_id)
        deliverables: List[Deliverable] = []
        if session_dir is None:
            return deliverables

        for subdir, kind in DELIVERABLE_DIRS:
            directory = session_dir / subdir
            if not directory.is_dir():
                continue
            try:
                files = sorted(directory.iterdir())
            except OSError as exc:
                logger.error("Failed to list %s for %s: %s", subdir, workflow_id, exc)
                continue
            for path in files:
                if not path.is_file():
                    continue
                deliverables.append(
                    Deliverable(
                        name=path.name,
                        path=f"{subdir}/{path.name}",
                        size=path.stat().st_size,
                        type=kind,
                    )
                )

        return deliverables

    def get_deliverable_content(self, workflow_id: str, file_path: str) -> Optional[str]:
        """Return a deliverable's text, or None when missing or outside the workflow directory."""
        session_dir = self._workflow_dir(workflow_id)
        if session_dir is None or not file_path:
            return None

        relative = PurePosixPath(file_path.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            return None

        full_path = session_dir.joinpath(*relative.parts)
        try:
            resolved = full_path.resolve()
            if not resolved.is_relative_to(session_dir.resolve()):
                return None
            return resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None


def merge_workflow_listing(
    live_workflows: Iterable[Dict[str, Any]],
    sessions: Iterable[Dict[str, Any]],
    *,
    now_ms: int,
) -> List[Dict[str, Any]]:
    """
    Combine engine-reported workflows with historical audit sessions.

    Live entries take precedence; sessions without a live counterpart are
    reported as completed. The result is ordered by descending start time.
    """
    session_map = {session["workflowId"]: session for session in sessions}
    workflows: List[Dict[str, Any]] = []
    seen: set[str] = set()

    for live in live_workflows:
        workflow_id = live["workflowId"]
        if workflow_id in seen:
            continue
        seen.add(workflow_id)
        entry = dict(live)
        entry["webUrl"] = session_map.get(workflow_id, {}).get("targetUrl")
        workflows.append(entry)

    for workflow_id, session in session_map.items():
        if workflow_id in seen:
            continue
        seen.add(workflow_id)
        workflows.append(
            {
                "workflowId": workflow_id,
                "status": "completed",
                "webUrl": session.get("targetUrl"),
                "startTime": iso_to_millis(session.get("createdAt")) or now_ms,
            }
        )

    workflows.sort(key=lambda item: item.get("startTime") or 0, reverse=True)
    return workflows


__all__ = [
    "AuditStore",
    "Deliverable",
    "SessionMetrics",
    "iso_to_millis",
    "is_safe_workflow_id",
    "merge_workflow_listing",
]

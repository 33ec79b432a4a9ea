"""
Supervisor for the background pipeline worker process.

Exactly one worker may run at a time. Its stdout/stderr are captured line by
line into a bounded, timestamped log so the console can show recent output
without retaining the full stream.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
import sys
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..logger import log


logger = logging.getLogger(__name__)

MAX_LOG_LINES = 100
STATUS_LOG_LINES = 20
DEFAULT_START_GRACE_SECONDS = 1.0
DEFAULT_STOP_TIMEOUT_SECONDS = 5.0
_OVERSIZED_LINE_CHUNK = 64 * 1024
COMMON_TOOL_PATHS = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin", "/bin")


class WorkerError(RuntimeError):
    """Base class for worker lifecycle failures."""


class WorkerAlreadyRunningError(WorkerError):
    def __init__(self) -> None:
        super().__init__("Worker is already running")


class WorkerNotRunningError(WorkerError):
    def __init__(self) -> None:
        super().__init__("Worker is not running")


class WorkerStartError(WorkerError):
    """Raised when the worker could not be spawned or exited immediately."""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_worker_command(raw: Optional[str], default: Sequence[str]) -> List[str]:
    if raw:
        parts = shlex.split(raw)
        if parts:
            return parts
    return list(default)


def build_search_path(executable: str, base_path: Optional[str]) -> str:
    """PATH for the worker: runtime dirs and common tool locations ahead of the inherited PATH."""
    candidates: List[str] = [os.path.dirname(sys.executable)]
    resolved = shutil.which(executable)
    if resolved:
        candidates.append(os.path.dirname(resolved))
    candidates.extend(COMMON_TOOL_PATHS)
    if base_path:
        candidates.append(base_path)

    seen: set[str] = set()
    ordered: List[str] = []
    for entry in candidates:
        if entry and entry not in seen:
            seen.add(entry)
            ordered.append(entry)
    return os.pathsep.join(ordered)


class WorkerSupervisor:
    """Starts, monitors, and stops the single pipeline worker process."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env_provider: Optional[Callable[[], Mapping[str, str]]] = None,
        extra_env: Optional[Mapping[str, str]] = None,
        start_grace_seconds: float = DEFAULT_START_GRACE_SECONDS,
        stop_timeout_seconds: float = DEFAULT_STOP_TIMEOUT_SECONDS,
    ) -> None:
        if not command:
            raise ValueError("Worker command must not be empty")
        self.command = list(command)
        self.cwd = Path(cwd)
        self._env_provider = env_provider
        self._extra_env = dict(extra_env or {})
        self.start_grace_seconds = start_grace_seconds
        self.stop_timeout_seconds = stop_timeout_seconds

        self._process: Optional[asyncio.subprocess.Process] = None
        self._started_at: Optional[str] = None
        self._logs: deque[str] = deque(maxlen=MAX_LOG_LINES)
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    # --- log buffer ------------------------------------------------------------
    def _add_log(self, message: str) -> None:
        self._logs.append(f"[{_utcnow_iso()}] {message}")

    @property
    def log_lines(self) -> List[str]:
        """Every retained line (at most ``MAX_LOG_LINES``)."""
        return list(self._logs)

    def recent_logs(self, limit: int = STATUS_LOG_LINES) -> List[str]:
        return list(self._logs)[-limit:]

    # --- state -----------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def status(self) -> Dict[str, object]:
        return {
            "running": self.running,
            "pid": self.pid,
            "startedAt": self._started_at,
            "logs": self.recent_logs(),
        }

    def _build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self._env_provider is not None:
            env.update(self._env_provider())
        env.update(self._extra_env)
        env["PATH"] = build_search_path(self.command[0], os.environ.get("PATH"))
        return env

    def _spawn_task(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _pump(self, stream: Optional[asyncio.StreamReader], label: str) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # Line longer than the stream limit; take what is buffered.
                raw = await stream.read(_OVERSIZED_LINE_CHUNK)
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                self._add_log(f"[{label}] {line}")

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if returncode < 0:
            self._add_log(f"Worker exited with code None, signal {-returncode}")
        else:
            self._add_log(f"Worker exited with code {returncode}, signal None")
        if self._process is process:
            self._process = None
            self._started_at = None

    # --- lifecycle -------------------------------------------------------------
    async def start(self) -> Dict[str, object]:
        """
        Spawn the worker.

        Raises:
            WorkerAlreadyRunningError: If a live worker exists
            WorkerStartError: If spawning fails or the process exits during the grace period
        """
        async with self._lock:
            if self.running:
                raise WorkerAlreadyRunningError()

            self._logs.clear()
            self._add_log("Starting Temporal worker...")
            self._add_log(f"Using command: {' '.join(self.command)}")

            try:
                process = await asyncio.create_subprocess_exec(
                    *self.command,
                    cwd=str(self.cwd),
                    env=self._build_env(),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                self._process = None
                self._started_at = None
                self._add_log(f"Failed to start worker: {exc}")
                logger.error("Failed to spawn worker %s: %s", self.command, exc)
                raise WorkerStartError(str(exc)) from exc

            self._process = process
            self._started_at = _utcnow_iso()
            self._spawn_task(self._pump(process.stdout, "stdout"))
            self._spawn_task(self._pump(process.stderr, "stderr"))
            self._spawn_task(self._watch(process))

            await asyncio.sleep(self.start_grace_seconds)

            if process.returncode is not None:
                if self._process is process:
                    self._process = None
                    self._started_at = None
                raise WorkerStartError("Worker failed to start - check logs")

            self._add_log(f"Worker started with PID {process.pid}")
            log(f"[worker] started pid={process.pid}")
            return self.status()

    async def stop(self) -> None:
        """
        Terminate the worker, escalating to SIGKILL after the stop timeout.

        Raises:
            WorkerNotRunningError: If no live worker exists
        """
        async with self._lock:
            process = self._process
            if process is None or process.returncode is not None:
                raise WorkerNotRunningError()

            self._add_log("Stopping worker...")
            try:
                process.terminate()
            except ProcessLookupError:
                pass

            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout_seconds)
            except asyncio.TimeoutError:
                self._add_log("Worker did not stop gracefully, sending SIGKILL")
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

            if self._process is process:
                self._process = None
                self._started_at = None
            self._add_log("Worker stopped")
            log(f"[worker] stopped pid={process.pid}")

    async def shutdown(self) -> None:
        """Stop the worker if it is running; used when the API process exits."""
        if self.running:
            try:
                await self.stop()
            except WorkerNotRunningError:
                pass


__all__ = [
    "MAX_LOG_LINES",
    "STATUS_LOG_LINES",
    "WorkerAlreadyRunningError",
    "WorkerError",
    "WorkerNotRunningError",
    "WorkerStartError",
    "WorkerSupervisor",
    "build_search_path",
    "parse_worker_command",
]

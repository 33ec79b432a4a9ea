"""Background worker supervision for the pentest console."""

from .supervisor import (
    WorkerAlreadyRunningError,
    WorkerError,
    WorkerNotRunningError,
    WorkerStartError,
    WorkerSupervisor,
)

__all__ = [
    "WorkerAlreadyRunningError",
    "WorkerError",
    "WorkerNotRunningError",
    "WorkerStartError",
    "WorkerSupervisor",
]

"""Core helpers shared between the API and the command-line entry points."""

from .container import ServiceContainer, build_container  # noqa: F401
from .workflows import (  # noqa: F401
    PipelineInput,
    WorkflowClient,
    WorkflowEngineUnavailableError,
    sanitize_hostname,
)

__all__ = [
    "ServiceContainer",
    "build_container",
    "PipelineInput",
    "WorkflowClient",
    "WorkflowEngineUnavailableError",
    "sanitize_hostname",
]

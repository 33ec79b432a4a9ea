"""Route modules for the console API."""

from . import auth, configs, settings, workflows, worker

__all__ = [
    "auth",
    "configs",
    "settings",
    "workflows",
    "worker",
]

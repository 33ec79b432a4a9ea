"""Lightweight logging helper shared by the console services."""

from __future__ import annotations

import logging
from typing import Any

_LOGGER = logging.getLogger("pentest_console")

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _coerce(parts: tuple[object, ...]) -> str:
    rendered = " ".join(str(part) for part in parts if part is not None)
    return rendered.strip()


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler once; later calls only adjust the level."""

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_LOG_FORMAT)
    root.setLevel(level)


def log(*parts: object, **metadata: Any) -> None:
    """
    Emit an info-level lifecycle message.

    Keyword arguments are appended to the message as a metadata dict so
    callers can attach context (``user=...``, ``workflow_id=...``) without
    building the string themselves.
    """

    message = _coerce(parts)
    if metadata:
        message = f"{message} | {metadata}"

    if not _LOGGER.handlers and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)

    _LOGGER.info(message)


__all__ = ["configure_logging", "log"]

"""Validate LLM provider API keys with a minimal authenticated request."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import requests


logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "openai", "openrouter")

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_TEST_MODEL = "claude-3-haiku-20240307"
OPENAI_MODELS_URL = "https://api.openai.com/v1/models"
OPENROUTER_MODELS_URL = "https://openrouter.ai/api/v1/models"

# A 400 means the request was authenticated but rejected for its content.
ACCEPTED_STATUS_CODES = {200, 400}
DEFAULT_TIMEOUT_SECONDS = 15


class UnknownProviderError(ValueError):
    """Raised for providers the console cannot test."""


def _send_key_check(provider: str, api_key: str, timeout: float) -> requests.Response:
    if provider == "anthropic":
        return requests.post(
            ANTHROPIC_MESSAGES_URL,
            headers={
                "Content-Type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            json={
                "model": ANTHROPIC_TEST_MODEL,
                "max_tokens": 1,
                "messages": [{"role": "user", "content": "Hi"}],
            },
            timeout=timeout,
        )
    if provider == "openai":
        return requests.get(OPENAI_MODELS_URL, headers={"Authorization": f"Bearer {api_key}"}, timeout=timeout)
    if provider == "openrouter":
        return requests.get(OPENROUTER_MODELS_URL, headers={"Authorization": f"Bearer {api_key}"}, timeout=timeout)
    raise UnknownProviderError(f"Unknown provider: {provider}")


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"HTTP {response.status_code}"


def verify_api_key(provider: str, api_key: str, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Tuple[bool, Optional[str]]:
    """
    Probe ``provider`` with ``api_key``.

    Returns:
        ``(valid, error)`` where ``error`` is None for accepted keys
    """
    try:
        response = _send_key_check(provider, api_key, timeout)
    except requests.RequestException as exc:
        logger.warning("API key check for %s failed: %s", provider, exc)
        return False, str(exc) or "Connection failed"

    if response.status_code in ACCEPTED_STATUS_CODES:
        return True, None
    return False, _error_message(response)


__all__ = ["ACCEPTED_STATUS_CODES", "PROVIDERS", "UnknownProviderError", "verify_api_key"]

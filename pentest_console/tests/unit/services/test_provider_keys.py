"""Unit tests for provider API key probing."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from pentest_console.services import UnknownProviderError, verify_api_key
from pentest_console.services import provider_keys


class DummyResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _patch_requests(monkeypatch: pytest.MonkeyPatch, response=None, error=None) -> dict:
    recorded: dict = {}

    def fake_call(method):
        def _call(url, headers=None, json=None, timeout=None):
            recorded.update(method=method, url=url, headers=headers, json=json, timeout=timeout)
            if error is not None:
                raise error
            return response

        return _call

    monkeypatch.setattr(
        provider_keys,
        "requests",
        SimpleNamespace(
            post=fake_call("POST"),
            get=fake_call("GET"),
            RequestException=requests.RequestException,
            Response=requests.Response,
        ),
    )
    return recorded


def test_anthropic_check_sends_minimal_message(monkeypatch: pytest.MonkeyPatch) -> None:
    recorded = _patch_requests(monkeypatch, DummyResponse(200))

    assert verify_api_key("anthropic", "sk-ant-test") == (True, None)
    assert recorded["method"] == "POST"
    assert recorded["headers"]["x-api-key"] == "sk-ant-test"
    assert recorded["json"]["max_tokens"] == 1


@pytest.mark.parametrize("provider", ["openai", "openrouter"])
def test_bearer_providers_list_models(monkeypatch: pytest.MonkeyPatch, provider: str) -> None:
    recorded = _patch_requests(monkeypatch, DummyResponse(200))

    assert verify_api_key(provider, "sk-test") == (True, None)
    assert recorded["method"] == "GET"
    assert recorded["headers"]["Authorization"] == "Bearer sk-test"


def test_bad_request_counts_as_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_requests(monkeypatch, DummyResponse(400, {"error": {"message": "model not found"}}))

    assert verify_api_key("openai", "sk-test") == (True, None)


def test_rejected_key_reports_provider_message(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_requests(monkeypatch, DummyResponse(401, {"error": {"message": "invalid x-api-key"}}))

    assert verify_api_key("anthropic", "sk-bad") == (False, "invalid x-api-key")


def test_rejected_key_without_body_reports_status(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_requests(monkeypatch, DummyResponse(403))

    assert verify_api_key("openrouter", "sk-bad") == (False, "HTTP 403")


def test_network_errors_are_reported_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_requests(monkeypatch, error=requests.ConnectionError("connection refused"))

    valid, error = verify_api_key("openai", "sk-test")

    assert valid is False
    assert "connection refused" in error


def test_unknown_provider_raises() -> None:
    with pytest.raises(UnknownProviderError):
        verify_api_key("mystery", "key")

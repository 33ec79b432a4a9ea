"""Unit tests for persisted sessions and signed session cookies."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from pentest_console.auth import SessionStore, sign_session_id, unsign_session_id
from pentest_console.auth import sessions as sessions_module


def test_unsign_round_trips_signed_value() -> None:
    signed = sign_session_id("abc123", "secret")

    assert signed.startswith("abc123.")
    assert unsign_session_id(signed, "secret") == "abc123"


@pytest.mark.parametrize("value", [None, "", "no-signature", ".sigonly", "abc123.deadbeef"])
def test_unsign_rejects_missing_or_tampered_values(value) -> None:
    assert unsign_session_id(value, "secret") is None


def test_unsign_rejects_value_signed_with_other_secret() -> None:
    assert unsign_session_id(sign_session_id("abc123", "other"), "secret") is None


def test_create_and_get_session(tmp_path: Path) -> None:
    store = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)

    record = store.create("user-1", "alice", True)
    loaded = store.get(record.sid)

    assert loaded == record
    assert loaded.is_admin is True


def test_sessions_persist_across_store_instances(tmp_path: Path) -> None:
    record = SessionStore(tmp_path / "sessions.db", max_age_seconds=60).create("user-1", "alice", False)

    reopened = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)

    assert reopened.get(record.sid) is not None


def test_expired_session_is_removed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)
    record = store.create("user-1", "alice", False)
    later = time.time() + 120

    monkeypatch.setattr(sessions_module.time, "time", lambda: later)

    assert store.get(record.sid) is None
    assert store.purge_expired() == 0


def test_touch_slides_expiry_forward(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)
    record = store.create("user-1", "alice", False)
    later = record.expires_at - 10

    monkeypatch.setattr(sessions_module.time, "time", lambda: later)
    new_expiry = store.touch(record.sid)

    assert new_expiry == later + 60
    assert store.get(record.sid).expires_at == new_expiry


def test_destroy_for_user_removes_every_session(tmp_path: Path) -> None:
    store = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)
    first = store.create("user-1", "alice", False)
    second = store.create("user-1", "alice", False)
    other = store.create("user-2", "bob", False)

    assert store.destroy_for_user("user-1") == 2
    assert store.get(first.sid) is None
    assert store.get(second.sid) is None
    assert store.get(other.sid) is not None


def test_purge_expired_counts_removed_rows(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SessionStore(tmp_path / "sessions.db", max_age_seconds=60)
    store.create("user-1", "alice", False)
    store.create("user-2", "bob", False)
    later = time.time() + 120

    monkeypatch.setattr(sessions_module.time, "time", lambda: later)

    assert store.purge_expired() == 2

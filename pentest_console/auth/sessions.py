"""
Server-side session records backed by an SQLite file.

The browser only ever sees ``<session id>.<signature>``; the identity linked to
the session lives in the ``sessions`` table. Expiry is rolling: every call to
:meth:`SessionStore.touch` pushes it forward by the configured max age.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    sid TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    username TEXT NOT NULL,
    is_admin INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL
)
"""

SQLITE_CONNECT_TIMEOUT_S = 10


@dataclass(frozen=True)
class SessionRecord:
    sid: str
    user_id: str
    username: str
    is_admin: bool
    expires_at: float


def sign_session_id(sid: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), sid.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"{sid}.{digest}"


def unsign_session_id(value: Optional[str], secret: str) -> Optional[str]:
    """Return the session id from a signed cookie value, or None if tampered."""
    if not value or "." not in value:
        return None
    sid, _, signature = value.rpartition(".")
    if not sid:
        return None
    expected = sign_session_id(sid, secret).rpartition(".")[2]
    if not hmac.compare_digest(signature, expected):
        return None
    return sid


class SessionStore:
    """Persists login sessions so they survive server restarts."""

    def __init__(self, db_path: Path, *, max_age_seconds: int) -> None:
        self.db_path = Path(db_path)
        self.max_age_seconds = max_age_seconds
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        if not self._initialized:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=SQLITE_CONNECT_TIMEOUT_S)
        conn.row_factory = sqlite3.Row
        if not self._initialized:
            conn.execute(_SCHEMA)
            conn.commit()
            self._initialized = True
        return conn

    def create(self, user_id: str, username: str, is_admin: bool) -> SessionRecord:
        sid = secrets.token_urlsafe(32)
        now = time.time()
        expires_at = now + self.max_age_seconds
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO sessions(sid, user_id, username, is_admin, created_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (sid, user_id, username, int(is_admin), now, expires_at),
            )
            conn.commit()
        finally:
            conn.close()
        return SessionRecord(sid=sid, user_id=user_id, username=username, is_admin=is_admin, expires_at=expires_at)

    def get(self, sid: str) -> Optional[SessionRecord]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT sid, user_id, username, is_admin, expires_at FROM sessions WHERE sid = ?",
                (sid,),
            ).fetchone()
            if row is None:
                return None
            if row["expires_at"] <= time.time():
                conn.execute("DELETE FROM sessions WHERE sid = ?", (sid,))
                conn.commit()
                return None
        finally:
            conn.close()

        return SessionRecord(
            sid=row["sid"],
            user_id=row["user_id"],
            username=row["username"],
            is_admin=bool(row["is_admin"]),
            expires_at=row["expires_at"],
        )

    def touch(self, sid: str) -> float:
        """Slide the expiry window forward and return the new expiry timestamp."""
        expires_at = time.time() + self.max_age_seconds
        conn = self._connect()
        try:
            conn.execute("UPDATE sessions SET expires_at = ? WHERE sid = ?", (expires_at, sid))
            conn.commit()
        finally:
            conn.close()
        return expires_at

    def destroy(self, sid: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM sessions WHERE sid = ?", (sid,))
            conn.commit()
        finally:
            conn.close()

    def destroy_for_user(self, user_id: str) -> int:
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def purge_expired(self) -> int:
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
            conn.commit()
            removed = cursor.rowcount
        finally:
            conn.close()
        if removed:
            logger.info("Purged %s expired sessions", removed)
        return removed


__all__ = ["SessionRecord", "SessionStore", "sign_session_id", "unsign_session_id"]

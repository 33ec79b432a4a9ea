"""
User store and credential verification.

This module provides:
- A JSON-file backed user store rewritten in full on every mutation
- bcrypt password hashing and verification
- Bootstrap of the first admin account from environment variables
- Guard rails for deleting accounts (self / last admin)
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import bcrypt
from pydantic import ValidationError

from ..logger import log
from .models import StoredUser, UserResponse, UsersFile


logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 12
WEAK_PASSWORDS = {"changeme"}
MIN_PASSWORD_LENGTH = 8
# bcrypt only considers the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


class UserConflictError(ValueError):
    """Raised when a username is already taken."""


class UserDeletionError(ValueError):
    """Raised when a delete request would remove a protected account."""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class AuthManager:
    """Manages console users persisted in a local JSON file."""

    def __init__(self, users_file: Path, *, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self.users_file = Path(users_file)
        self.bcrypt_rounds = bcrypt_rounds
        self._users: List[StoredUser] = []
        self._loaded = False
        self._lock = threading.RLock()

    # --- lifecycle -------------------------------------------------------------
    def initialize(
        self,
        admin_username: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> None:
        """Load users from disk and bootstrap the first admin if the store is empty."""
        with self._lock:
            if self._loaded:
                return

            self._load_users()
            if not self._users:
                self._bootstrap_admin_user(admin_username, admin_password)

            self._loaded = True

    def _load_users(self) -> None:
        try:
            raw = self.users_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._users = []
            return
        except OSError as exc:
            logger.warning("Could not read users file %s: %s", self.users_file, exc)
            self._users = []
            return

        try:
            parsed = UsersFile.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Users file %s failed validation, starting fresh: %s", self.users_file, exc)
            self._users = []
            return

        self._users = list(parsed.users)
        log(f"[auth] loaded {len(self._users)} users from {self.users_file}")

    def _save_users(self) -> None:
        payload = {"users": [user.model_dump(by_alias=True) for user in self._users]}
        self.users_file.parent.mkdir(parents=True, exist_ok=True)
        self.users_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _bootstrap_admin_user(self, username: Optional[str], password: Optional[str]) -> None:
        if not username or not password:
            logger.warning(
                "No users exist and ADMIN_USERNAME/ADMIN_PASSWORD are not set. "
                "Set these environment variables to create the initial admin user."
            )
            return

        if password in WEAK_PASSWORDS or len(password) < MIN_PASSWORD_LENGTH:
            logger.warning(
                "Using a weak or default admin password. Change ADMIN_PASSWORD to a strong password."
            )

        try:
            self.create_user(username, password, is_admin=True, created_by=None)
        except (UserConflictError, OSError) as exc:
            logger.error("Failed to create initial admin user: %s", exc)
            return
        log(f"[auth] created initial admin user: {username}")

    # --- hashing ---------------------------------------------------------------
    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
        return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_encode_password(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    # --- queries ---------------------------------------------------------------
    def get_user_by_id(self, user_id: str) -> Optional[StoredUser]:
        with self._lock:
            return next((user for user in self._users if user.id == user_id), None)

    def get_user_by_username(self, username: str) -> Optional[StoredUser]:
        normalized = (username or "").casefold()
        with self._lock:
            return next((user for user in self._users if user.username.casefold() == normalized), None)

    def list_users(self) -> List[UserResponse]:
        with self._lock:
            return [UserResponse.from_stored(user) for user in self._users]

    def has_users(self) -> bool:
        with self._lock:
            return bool(self._users)

    def admin_count(self) -> int:
        with self._lock:
            return sum(1 for user in self._users if user.is_admin)

    # --- mutations -------------------------------------------------------------
    def create_user(
        self,
        username: str,
        password: str,
        *,
        email: Optional[str] = None,
        is_admin: bool = False,
        created_by: Optional[str] = None,
    ) -> UserResponse:
        """
        Create and persist a new user.

        Args:
            username: Login name, unique regardless of case
            password: Plain-text password to hash
            email: Optional contact address
            is_admin: Whether the user may manage other users
            created_by: Id of the admin creating the account (None for bootstrap)

        Returns:
            The client-safe view of the created user

        Raises:
            UserConflictError: If the username already exists
        """
        password_hash = self.hash_password(password)

        with self._lock:
            if self.get_user_by_username(username) is not None:
                raise UserConflictError("Username already exists")

            user = StoredUser(
                id=str(uuid.uuid4()),
                username=username,
                email=email or None,
                password_hash=password_hash,
                is_admin=is_admin,
                created_at=_utcnow_iso(),
                created_by=created_by,
            )
            self._users.append(user)
            try:
                self._save_users()
            except OSError:
                self._users.remove(user)
                raise

        return UserResponse.from_stored(user)

    def verify_password(self, username: str, password: str) -> Optional[StoredUser]:
        """
        Return the matching user when the credentials are valid.

        Unknown usernames still pay for one bcrypt hash so the response time
        does not reveal whether the account exists.
        """
        user = self.get_user_by_username(username)
        if user is None:
            self.hash_password(password)
            return None

        return user if self._check_password(password, user.password_hash) else None

    def delete_user(self, user_id: str, *, acting_user_id: Optional[str] = None) -> bool:
        """
        Delete a user by id.

        Returns:
            True when a user was removed, False when no user matched

        Raises:
            UserDeletionError: For self-deletion or removal of the last admin
        """
        if acting_user_id is not None and user_id == acting_user_id:
            raise UserDeletionError("Cannot delete your own account")

        with self._lock:
            target = self.get_user_by_id(user_id)
            if target is None:
                return False

            if target.is_admin and self.admin_count() <= 1:
                raise UserDeletionError("Cannot delete the last admin user")

            index = self._users.index(target)
            self._users.pop(index)
            try:
                self._save_users()
            except OSError:
                self._users.insert(index, target)
                raise

        log(f"[auth] deleted user {target.username}", by=acting_user_id)
        return True


__all__ = ["AuthManager", "UserConflictError", "UserDeletionError"]

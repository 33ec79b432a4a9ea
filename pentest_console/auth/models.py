"""Persisted user records and their client-safe projection."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoredUser(BaseModel):
    """User record as written to the users file (includes the password hash)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: Optional[str] = None
    password_hash: str = Field(alias="passwordHash")
    is_admin: bool = Field(default=False, alias="isAdmin")
    created_at: str = Field(alias="createdAt")
    created_by: Optional[str] = Field(default=None, alias="createdBy")


class UsersFile(BaseModel):
    users: List[StoredUser] = Field(default_factory=list)


class UserResponse(BaseModel):
    """User data safe to return to a client (no password hash)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    email: Optional[str] = None
    is_admin: bool = Field(alias="isAdmin")
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_stored(cls, user: StoredUser) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_admin=user.is_admin,
            created_at=user.created_at,
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


__all__ = ["StoredUser", "UsersFile", "UserResponse"]

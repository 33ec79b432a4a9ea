"""Pydantic schemas for the console API."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, TypeAdapter, ValidationError, field_validator

_HTTP_URL = TypeAdapter(AnyHttpUrl)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")
    password: str = Field(..., min_length=8, max_length=100)
    email: Optional[EmailStr] = None
    isAdmin: bool = False


class StartWorkflowRequest(BaseModel):
    webUrl: str = Field(..., min_length=1)
    repoPath: str = Field(..., min_length=1)
    configName: Optional[str] = None
    outputPath: Optional[str] = None
    pipelineTestingMode: bool = False

    @field_validator("webUrl")
    @classmethod
    def check_web_url(cls, value: str) -> str:
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError as exc:
            raise ValueError("Input should be a valid http or https URL") from exc
        return value

    @field_validator("repoPath")
    @classmethod
    def strip_repo_path(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Repository path is required")
        return cleaned

    @field_validator("configName", "outputPath", mode="before")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SaveConfigRequest(BaseModel):
    content: str = Field(..., min_length=1)


class UpdateApiKeysRequest(BaseModel):
    anthropicApiKey: Optional[str] = None
    openaiApiKey: Optional[str] = None
    openrouterApiKey: Optional[str] = None


class UpdateRouterRequest(BaseModel):
    routerDefault: Optional[str] = None


class ApiKeyCheckRequest(BaseModel):
    provider: Literal["anthropic", "openai", "openrouter"]
    apiKey: str = Field(..., min_length=1)


__all__ = [
    "ApiKeyCheckRequest",
    "CreateUserRequest",
    "LoginRequest",
    "SaveConfigRequest",
    "StartWorkflowRequest",
    "UpdateApiKeysRequest",
    "UpdateRouterRequest",
]

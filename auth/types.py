"""Pydantic models for auth domain."""

import unicodedata
from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserStatus(str, Enum):
    """Activation lifecycle. Only PENDING -> ACTIVE is allowed."""

    PENDING = "pending"
    ACTIVE = "active"


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    email: EmailStr
    username: str = Field(..., min_length=1)
    password_hash: str = Field(..., repr=False)
    status: UserStatus
    created_at: datetime
    activated_at: datetime | None = None
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE


class ActivationToken(BaseModel):
    """An activation token awaiting use."""

    token: str = Field(..., description="URL-safe token", repr=False)
    user_id: UUID
    created_at: datetime
    expires_at: datetime
    consumed: bool  # Required - fail closed, no default


class IdentityClaims(BaseModel):
    """Claims carried by a signed identity token."""

    subject: UUID
    issued_at: datetime
    expires_at: datetime


class RegisterRequest(BaseModel):
    """Request payload for POST /register."""

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("username")
    @classmethod
    def _clean_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        if any(unicodedata.category(ch) == "Cc" for ch in value):
            raise ValueError("username must not contain control characters")
        return value

    @field_validator("password")
    @classmethod
    def _password_no_nul(cls, value: str) -> str:
        if "\x00" in value:
            raise ValueError("password must not contain NUL characters")
        return value


class LoginRequest(BaseModel):
    """
    Request payload for POST /login.

    Password has no minimum length here: a short password is a wrong
    password (401), not invalid input.
    """

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=1024)


def describe_validation_errors(errors: list[dict]) -> str:
    """Render pydantic errors as 'field: message; ...' without echoing input values."""
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"

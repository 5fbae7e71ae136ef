"""Pydantic schemas for authentication endpoints."""
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from core.config import get_settings
from schemas.base import CamelModel


def validate_username(username: str) -> str:
    """Trim a username and check it against the configured length bounds."""
    settings = get_settings()
    username = username.strip()
    if not settings.username_min_length <= len(username) <= settings.username_max_length:
        raise ValueError(
            f"Username must be between {settings.username_min_length} and "
            f"{settings.username_max_length} characters",
        )
    return username


def validate_password_length(password: str) -> str:
    """Check a new password against the configured minimum length."""
    settings = get_settings()
    if len(password) < settings.password_min_length:
        raise ValueError(
            f"Password must be at least {settings.password_min_length} characters",
        )
    return password


class RegisterRequest(CamelModel):
    """Schema for creating an account."""

    username: str
    email: EmailStr
    password: str = Field(max_length=1024)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        """Validate username length."""
        return validate_username(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Validate password length."""
        return validate_password_length(v)


class LoginRequest(CamelModel):
    """
    Schema for logging in.

    No format rules here: every bad combination must fail the same way.
    The username is only trimmed, as it was at registration.
    """

    username: str = Field(max_length=255)
    password: str = Field(max_length=1024)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        """Drop surrounding whitespace."""
        return v.strip()


class PasswordResetRequest(CamelModel):
    """Schema for asking for a password reset email."""

    email: str = Field(max_length=255)


class ResetPasswordRequest(CamelModel):
    """Schema for setting a new password with a reset token."""

    token: str = Field(min_length=1, max_length=255)
    new_password: str = Field(max_length=1024)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Validate password length."""
        return validate_password_length(v)


class UserResponse(CamelModel):
    """Public view of a user."""

    id: UUID
    username: str


class VerifyEmailResponse(CamelModel):
    """Response for a successful email verification."""

    username: str


class CsrfTokenResponse(CamelModel):
    """The session's anti-forgery token."""

    csrf_token: str

"""Pydantic v2 request/response schemas for authentication endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from stayledger.models.enums import UserRole

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Schema for user registration.

    Self-registration may choose ``guest`` or ``host``; administrators are
    provisioned out of band.
    """

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=50)
    role: UserRole = Field(UserRole.GUEST, description="guest or host")

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, value: UserRole) -> UserRole:
        if value is UserRole.ADMIN:
            raise ValueError("role must be guest or host")
        return value


class LoginRequest(BaseModel):
    """Schema for email/password login."""

    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Schema for token refresh."""

    refresh_token: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """JWT token pair returned on successful authentication."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """Public user profile information."""

    id: uuid.UUID
    email: str
    name: str
    phone: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Combined user + tokens returned on register/login."""

    user: UserResponse
    tokens: TokenResponse


class MessageResponse(BaseModel):
    """Generic message response, with any non-fatal warnings."""

    message: str
    warnings: list[str] = []

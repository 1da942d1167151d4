"""Authentication schemas."""

from uuid import UUID

from pydantic import EmailStr, Field

from studyhub.schemas.base import BaseSchema


class GoogleAuthRequest(BaseSchema):
    """Request schema for Google OAuth login."""

    id_token: str = Field(..., description="Google OAuth id_token from frontend")


class SignUpRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, min_length=1, max_length=255)


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseSchema):
    """Response schema for successful authentication."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiry in seconds")
    needs_onboarding: bool = Field(False, description="Profile lacks branch/year/semester")


class SessionInfo(BaseSchema):
    """What the client needs to route after a page load."""

    user_id: UUID
    is_admin: bool
    needs_onboarding: bool
    emergency_mode: bool

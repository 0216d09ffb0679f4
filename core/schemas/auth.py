"""
Core Authentication Schemas.

Pydantic models for authentication request/response validation.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(from_attributes=True)


class SignInRequest(BaseModel):
    """Email/password sign-in payload."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=1, description="Account password")


class SignUpRequest(BaseModel):
    """Account registration payload."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=6, description="Account password")
    full_name: str = Field(default="", description="Stored in the user's profile")


class AuthUserResponse(BaseSchema):
    """Authenticated user."""

    id: str
    email: Optional[str] = None
    full_name: str = ""


class SessionResponse(BaseModel):
    """Session issued by the auth provider."""

    access_token: str = Field(..., description="JWT to send as Authorization: Bearer")
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    user: AuthUserResponse


class ProfileResponse(BaseSchema):
    """Row of the profiles table."""

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None


class LandingResponse(BaseModel):
    """Where the landing page sends the caller."""

    authenticated: bool = Field(..., description="Whether the caller has a valid session")
    redirect_to: str = Field(..., description="'/dashboard' or '/auth'")


class MessageResponse(BaseModel):
    """Plain status message."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str = Field(..., description="Error type identifier")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(
        None, description="Additional error details")

"""
Core Schemas Package.

Provides framework-level Pydantic models used by all modules.
"""

from core.schemas.auth import (
    AuthUserResponse,
    BaseSchema,
    ErrorResponse,
    LandingResponse,
    MessageResponse,
    ProfileResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
)

__all__ = [
    "AuthUserResponse",
    "BaseSchema",
    "ErrorResponse",
    "LandingResponse",
    "MessageResponse",
    "ProfileResponse",
    "SessionResponse",
    "SignInRequest",
    "SignUpRequest",
]

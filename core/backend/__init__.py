"""
Backend-as-a-service integration.

Table API client, auth provider client and the typed errors both raise.
"""

from core.backend.auth import (
    ActiveSessionHolder,
    AuthSession,
    AuthUser,
    BackendAuthService,
    get_session_holder,
    reset_session_holder,
)
from core.backend.client import BackendClient, create_backend_client
from core.backend.exceptions import (
    BackendAuthError,
    BackendConfigurationError,
    BackendConnectionError,
    BackendError,
    BackendRequestError,
)

__all__ = [
    "ActiveSessionHolder",
    "AuthSession",
    "AuthUser",
    "BackendAuthService",
    "BackendClient",
    "create_backend_client",
    "get_session_holder",
    "reset_session_holder",
    "BackendError",
    "BackendAuthError",
    "BackendConfigurationError",
    "BackendConnectionError",
    "BackendRequestError",
]

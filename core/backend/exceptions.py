"""
Backend-as-a-service exceptions.

Typed errors raised by BackendClient and BackendAuthService so callers can
tell transport failures apart from rejected requests.
"""

from typing import Any, Optional


DUPLICATE_KEY_SQLSTATE = "23505"
SELF_MANAGER_MESSAGE = "cannot be their own manager"


class BackendError(Exception):
    """Base exception for backend-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BackendConfigurationError(BackendError):
    """Raised when the backend URL or API key is missing."""
    pass


class BackendConnectionError(BackendError):
    """Raised when the backend cannot be reached (network, DNS, timeout)."""
    pass


class BackendAuthError(BackendError):
    """Raised when the backend rejects the credentials or the access token."""
    pass


class BackendRequestError(BackendError):
    """
    Raised when the backend answers with an error payload.

    PostgREST errors carry ``code`` (SQLSTATE), ``message``, ``details``
    and ``hint``. Trigger exceptions surface here with their raw message.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
        hint: Any = None,
    ) -> None:
        super().__init__(message, status_code)
        self.code = code
        self.details = details
        self.hint = hint

    @property
    def is_duplicate_key(self) -> bool:
        """Unique constraint violation (employee_number or email)."""
        return self.code == DUPLICATE_KEY_SQLSTATE or "duplicate key" in self.message

    @property
    def is_self_manager_violation(self) -> bool:
        """Raised by the prevent_self_reporting trigger."""
        return SELF_MANAGER_MESSAGE in self.message

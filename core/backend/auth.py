"""
Backend Authentication Service.

Email/password authentication against the backend's auth provider (GoTrue).
Sessions are JWTs issued by the provider; the same token is forwarded to
the table API so row-level security evaluates as that user.

Verification Strategy:
    - With BACKEND_JWT_SECRET configured, access tokens are verified locally
      with PyJWT (HS256, audience "authenticated").
    - Without it, the provider's /user endpoint is asked instead.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import jwt

from core.app_context import ConfigLoader
from core.backend.exceptions import (
    BackendAuthError,
    BackendConfigurationError,
    BackendConnectionError,
    BackendRequestError,
)

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"


@dataclass
class AuthUser:
    """Authenticated user as reported by the auth provider."""

    id: str
    email: Optional[str] = None
    full_name: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthUser":
        """Build from a provider user object or from decoded JWT claims."""
        metadata = payload.get("user_metadata") or {}
        return cls(
            id=str(payload.get("id") or payload.get("sub") or ""),
            email=payload.get("email"),
            full_name=metadata.get("full_name", ""),
            metadata=metadata,
        )


@dataclass
class AuthSession:
    """Access/refresh token pair returned by sign-in and sign-up."""

    access_token: str
    user: AuthUser
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthSession":
        expires_in = payload.get("expires_in")
        expires_at = payload.get("expires_at")
        if expires_at is None and expires_in is not None:
            expires_at = int(time.time()) + int(expires_in)
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type", "bearer"),
            expires_in=expires_in,
            expires_at=expires_at,
            user=AuthUser.from_payload(payload.get("user") or {}),
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= int(time.time())


class BackendAuthService:
    """
    Client for the auth provider endpoints.

    Args:
        http_client: Shared httpx.AsyncClient (required).
        config_loader: ConfigLoader instance. If None, creates and loads one.

    Note:
        For unit testing, inject mock dependencies:
        >>> mock_client = AsyncMock(spec=httpx.AsyncClient)
        >>> service = BackendAuthService(mock_client, config_loader=mock_config)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config_loader: ConfigLoader | None = None,
    ) -> None:
        if config_loader is not None:
            self._config_loader = config_loader
        else:
            self._config_loader = ConfigLoader()
            self._config_loader.load()

        self._client = http_client
        self._base_url = (self._config_loader.get("backend.url", "") or "").rstrip("/")
        self._anon_key = self._config_loader.get("backend.anon_key", "") or ""
        self._timeout = self._config_loader.get("backend.timeout", 30.0)

        security = self._config_loader.get("security", {}) or {}
        self._jwt_secret = security.get("jwt_secret_key", "")
        self._jwt_algorithm = security.get("jwt_algorithm", "HS256")
        self._jwt_audience = security.get("jwt_audience", "authenticated")

    @property
    def can_verify_locally(self) -> bool:
        return bool(self._jwt_secret)

    def _headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._anon_key}",
            "Content-Type": "application/json",
        }

    async def _post(
        self,
        path: str,
        payload: Optional[dict[str, Any]] = None,
        access_token: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        if not self._base_url or not self._anon_key:
            raise BackendConfigurationError(
                "Backend not configured. Set BACKEND_URL and BACKEND_ANON_KEY."
            )
        try:
            return await self._client.post(
                f"{self._base_url}{AUTH_PATH}{path}",
                params=params,
                json=payload,
                headers=self._headers(access_token),
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            raise BackendConnectionError(f"Auth provider unreachable: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if not isinstance(payload, dict):
            return f"HTTP {response.status_code}"
        return str(
            payload.get("error_description")
            or payload.get("msg")
            or payload.get("message")
            or payload.get("error")
            or f"HTTP {response.status_code}"
        )

    # =========================================================================
    # Sign up / Sign in / Sign out
    # =========================================================================

    async def sign_up(self, email: str, password: str, full_name: str = "") -> AuthSession:
        """
        Register a new account.

        ``full_name`` is stored in user metadata; the on_auth_user_created
        trigger copies it into the profiles table.

        Raises:
            BackendRequestError: Provider rejected the registration.
            BackendAuthError: Provider requires email confirmation first.
        """
        logger.info(f"Signing up {email}")
        response = await self._post(
            "/signup",
            {"email": email, "password": password, "data": {"full_name": full_name}},
        )
        if response.status_code >= 400:
            raise BackendRequestError(
                self._error_message(response), status_code=response.status_code
            )

        payload = response.json()
        if "access_token" not in payload:
            # Confirmation-required projects return only the user object
            raise BackendAuthError(
                "Check your email to confirm your account", status_code=response.status_code
            )
        return AuthSession.from_payload(payload)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Exchange email and password for a session.

        Raises:
            BackendAuthError: Invalid credentials.
        """
        logger.info(f"Signing in {email}")
        response = await self._post(
            "/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        if response.status_code in (400, 401, 403):
            raise BackendAuthError(
                self._error_message(response), status_code=response.status_code
            )
        if response.status_code >= 400:
            raise BackendRequestError(
                self._error_message(response), status_code=response.status_code
            )
        return AuthSession.from_payload(response.json())

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session on the provider side."""
        response = await self._post("/logout", access_token=access_token)
        if response.status_code >= 400 and response.status_code != 401:
            raise BackendRequestError(
                self._error_message(response), status_code=response.status_code
            )

    # =========================================================================
    # Token verification
    # =========================================================================

    async def get_user(self, access_token: str) -> AuthUser:
        """
        Resolve the user behind an access token via the provider.

        Raises:
            BackendAuthError: Token rejected.
            BackendConnectionError: Provider unreachable.
        """
        if not self._base_url or not self._anon_key:
            raise BackendConfigurationError(
                "Backend not configured. Set BACKEND_URL and BACKEND_ANON_KEY."
            )
        try:
            response = await self._client.get(
                f"{self._base_url}{AUTH_PATH}/user",
                headers=self._headers(access_token),
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            raise BackendConnectionError(f"Auth provider unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise BackendAuthError(
                self._error_message(response), status_code=response.status_code
            )
        if response.status_code >= 400:
            raise BackendRequestError(
                self._error_message(response), status_code=response.status_code
            )
        return AuthUser.from_payload(response.json())

    def decode_access_token(self, access_token: str) -> dict[str, Any]:
        """
        Verify signature, expiry and audience locally.

        Raises:
            BackendAuthError: Token expired or invalid.
        """
        try:
            return jwt.decode(
                access_token,
                self._jwt_secret,
                algorithms=[self._jwt_algorithm],
                audience=self._jwt_audience,
            )
        except jwt.ExpiredSignatureError as e:
            raise BackendAuthError("Token has expired", status_code=401) from e
        except jwt.InvalidTokenError as e:
            raise BackendAuthError(f"Invalid token: {e}", status_code=401) from e

    async def verify_access_token(self, access_token: str) -> AuthUser:
        """Verify locally when a JWT secret is configured, otherwise ask the provider."""
        if not access_token:
            raise BackendAuthError("Token is required", status_code=401)
        if self.can_verify_locally:
            return AuthUser.from_payload(self.decode_access_token(access_token))
        return await self.get_user(access_token)


# =============================================================================
# Active Session
# =============================================================================

class ActiveSessionHolder:
    """
    Remembers the most recent authenticated session.

    Background sync on reconnect has no request context; it replays the
    pending queue as this user so RLS policies still apply.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[AuthSession] = None

    def remember(self, session: AuthSession) -> None:
        with self._lock:
            self._session = session

    def get(self) -> Optional[AuthSession]:
        with self._lock:
            return self._session

    def clear(self, access_token: Optional[str] = None) -> None:
        """Forget the session; with a token, only if it is the remembered one."""
        with self._lock:
            if access_token is None or (
                self._session is not None and self._session.access_token == access_token
            ):
                self._session = None

    def matches(self, access_token: str) -> bool:
        with self._lock:
            return self._session is not None and self._session.access_token == access_token

    @property
    def access_token(self) -> Optional[str]:
        session = self.get()
        return session.access_token if session else None


_session_holder: Optional[ActiveSessionHolder] = None


def get_session_holder() -> ActiveSessionHolder:
    """Get the process-wide ActiveSessionHolder."""
    global _session_holder
    if _session_holder is None:
        _session_holder = ActiveSessionHolder()
    return _session_holder


def reset_session_holder() -> None:
    """Drop the process-wide holder (tests)."""
    global _session_holder
    _session_holder = None

"""
Core Authentication Router.

Email/password authentication backed by the backend's auth provider.
Issued access tokens are sent back as ``Authorization: Bearer`` and are
forwarded to the table API so row-level security applies per user.

Offline Behavior:
    When the provider cannot be reached and tokens cannot be verified
    locally, a token equal to the remembered active session is accepted
    so the directory stays usable against the local cache.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.backend import (
    AuthSession,
    AuthUser,
    BackendAuthError,
    BackendClient,
    BackendConfigurationError,
    BackendConnectionError,
    BackendError,
    BackendRequestError,
)
from core.dependencies import (
    AuthServiceDep,
    BackendDep,
    ConfigDep,
    SessionHolderDep,
)
from core.schemas.auth import (
    AuthUserResponse,
    LandingResponse,
    MessageResponse,
    ProfileResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
)


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])
landing_router = APIRouter(tags=["Authentication"])
security = HTTPBearer(auto_error=False)


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


@dataclass
class AuthenticatedUser:
    """The caller behind a verified bearer token."""

    user: AuthUser
    access_token: str
    offline: bool = False


async def _resolve_user(
    token: str,
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> AuthenticatedUser:
    try:
        user = await auth_service.verify_access_token(token)
    except BackendAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except (BackendConnectionError, BackendConfigurationError) as e:
        remembered = holder.get()
        if remembered is not None and remembered.access_token == token:
            logger.info("Auth provider unavailable; accepting remembered session")
            return AuthenticatedUser(user=remembered.user, access_token=token, offline=True)
        logger.warning(f"Cannot verify token: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )
    except BackendRequestError as e:
        logger.error(f"Token verification failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not holder.matches(token):
        holder.remember(AuthSession(access_token=token, user=user))
    return AuthenticatedUser(user=user, access_token=token)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> AuthenticatedUser:
    """
    FastAPI dependency: validate the bearer token and return the caller.

    Raises:
        HTTPException 401: Missing, expired or invalid token.
        HTTPException 503: Provider unreachable and token unknown.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _resolve_user(credentials.credentials, auth_service, holder)


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


def get_user_backend(current_user: CurrentUser, backend: BackendDep) -> BackendClient:
    """Table API client acting as the signed-in user."""
    return backend.with_token(current_user.access_token)


UserBackendDep = Annotated[BackendClient, Depends(get_user_backend)]


def _session_response(session: AuthSession) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        token_type=session.token_type,
        expires_in=session.expires_in,
        expires_at=session.expires_at,
        user=AuthUserResponse(
            id=session.user.id,
            email=session.user.email,
            full_name=session.user.full_name,
        ),
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    request_data: SignUpRequest,
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> SessionResponse:
    """Register an account and start a session."""
    try:
        session = await auth_service.sign_up(
            request_data.email, request_data.password, request_data.full_name
        )
    except BackendAuthError as e:
        # Email confirmation pending: the account exists but has no session yet
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content={"message": e.message})
    except BackendRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except BackendError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    holder.remember(session)
    logger.info(f"Account created for {request_data.email}")
    return _session_response(session)


@router.post("/login", response_model=SessionResponse)
async def sign_in(
    request_data: SignInRequest,
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> SessionResponse:
    """Exchange email and password for a session."""
    try:
        session = await auth_service.sign_in(request_data.email, request_data.password)
    except BackendAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message or "Invalid login credentials",
        )
    except BackendError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    holder.remember(session)
    return _session_response(session)


@router.post("/logout", response_model=MessageResponse)
async def sign_out(
    current_user: CurrentUser,
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> MessageResponse:
    """End the session. The local session is forgotten even when offline."""
    holder.clear(current_user.access_token)
    try:
        await auth_service.sign_out(current_user.access_token)
    except BackendError as e:
        logger.warning(f"Remote sign-out failed: {e.message}")
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=AuthUserResponse)
async def get_me(current_user: CurrentUser) -> AuthUserResponse:
    """Return the current user."""
    user = current_user.user
    return AuthUserResponse(id=user.id, email=user.email, full_name=user.full_name)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: CurrentUser,
    backend: UserBackendDep,
    config: ConfigDep,
) -> ProfileResponse:
    """Return the caller's row from the profiles table."""
    table = config.get("backend.profiles_table", "profiles")
    try:
        rows = await backend.select(table, filters={"id": current_user.user.id})
    except BackendConnectionError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile unavailable offline",
        )
    except BackendError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return ProfileResponse.model_validate(rows[0])


@landing_router.get("/", response_model=LandingResponse)
async def landing(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    auth_service: AuthServiceDep,
    holder: SessionHolderDep,
) -> LandingResponse:
    """Report whether the caller has a valid session and where to go next."""
    if credentials is None or not credentials.credentials:
        return LandingResponse(authenticated=False, redirect_to="/auth")
    try:
        await _resolve_user(credentials.credentials, auth_service, holder)
    except HTTPException:
        return LandingResponse(authenticated=False, redirect_to="/auth")
    return LandingResponse(authenticated=True, redirect_to="/dashboard")

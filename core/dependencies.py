"""
FastAPI Dependencies - Dependency Injection for API Routers.

Provides `Annotated[Service, Depends(get_service)]` patterns for
clean dependency injection in FastAPI route handlers.

Usage:
    from core.dependencies import ConfigDep, DbSessionDep, HttpClientDep

    @router.get("/items")
    async def get_items(config: ConfigDep, db: DbSessionDep):
        ...
"""

from collections.abc import AsyncGenerator
from typing import Annotated, TYPE_CHECKING

import httpx
from fastapi import Depends, Request

from core.app_context import AppContext, ConfigLoader
from core.backend import (
    ActiveSessionHolder,
    BackendAuthService,
    BackendClient,
    get_session_holder,
)
from core.http_client import get_http_client_from_app

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


# =============================================================================
# Context / Configuration Dependencies
# =============================================================================

def get_context(request: Request) -> AppContext:
    """FastAPI dependency for the application context stored on app.state."""
    return request.app.state.context


AppContextDep = Annotated[AppContext, Depends(get_context)]


def get_config(context: AppContextDep) -> ConfigLoader:
    """FastAPI dependency for the configuration loader."""
    return context.config


ConfigDep = Annotated[ConfigLoader, Depends(get_config)]


# =============================================================================
# Database Session Dependencies
# =============================================================================

async def get_db() -> AsyncGenerator["AsyncSession", None]:
    """
    FastAPI dependency for an async cache database session.

    This is a re-export from core.database.session for convenience.
    """
    from core.database.session import get_db_session
    async for session in get_db_session():
        yield session


DbSessionDep = Annotated["AsyncSession", Depends(get_db)]


# =============================================================================
# HTTP Client Dependencies
# =============================================================================

def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    FastAPI dependency for shared HTTP client.

    Raises:
        RuntimeError: If HTTP client is not available.
    """
    return get_http_client_from_app(request.app)


HttpClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]


# =============================================================================
# Backend Dependencies
# =============================================================================

def get_backend(http_client: HttpClientDep, config: ConfigDep) -> BackendClient:
    """
    FastAPI dependency for the anonymous table API client.

    Use ``.with_token()`` (or UserBackendDep from core.api.auth) to act as
    the signed-in user.
    """
    return BackendClient(
        http_client=http_client,
        base_url=config.get("backend.url", ""),
        anon_key=config.get("backend.anon_key", ""),
        timeout=config.get("backend.timeout", 30.0),
    )


BackendDep = Annotated[BackendClient, Depends(get_backend)]


def get_auth_service(http_client: HttpClientDep, config: ConfigDep) -> BackendAuthService:
    """FastAPI dependency for the auth provider client."""
    return BackendAuthService(http_client, config_loader=config)


AuthServiceDep = Annotated[BackendAuthService, Depends(get_auth_service)]


def get_active_session_holder() -> ActiveSessionHolder:
    """FastAPI dependency for the remembered active session."""
    return get_session_holder()


SessionHolderDep = Annotated[ActiveSessionHolder, Depends(get_active_session_holder)]

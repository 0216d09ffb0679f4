"""
HTTP Client Lifecycle Management.

Owns the httpx.AsyncClient used to reach the backend-as-a-service.
The client is bound to the scope that created it:

    # FastAPI lifespan (main event loop):
    async with create_http_client_context(app) as http_manager:
        yield

    # Route handlers receive it through HttpClientDep.

    # Background work that outlives a request opens its own client:
    async with create_standalone_http_client() as client:
        backend = BackendClient(http_client=client, base_url=url, anon_key=key)
        await backend.select("employees")
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator, Optional

import httpx

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _build_limits(
    max_connections: int,
    max_keepalive_connections: int = 20,
    keepalive_expiry: float = 30.0,
) -> httpx.Limits:
    return httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_keepalive_connections,
        keepalive_expiry=keepalive_expiry,
    )


class HttpClientManager:
    """
    Start/stop wrapper around a single httpx.AsyncClient.

    Args:
        timeout: Default timeout for requests in seconds.
        max_connections: Maximum number of concurrent connections.
        max_keepalive_connections: Maximum keep-alive connections.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
    ) -> None:
        self._timeout = timeout
        self._limits = _build_limits(max_connections, max_keepalive_connections)
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> httpx.AsyncClient:
        """
        Create the HTTP client.

        Raises:
            RuntimeError: If client is already started.
        """
        if self._client is not None:
            raise RuntimeError("HTTP client already started")

        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            limits=self._limits,
            follow_redirects=True,
        )
        logger.info(
            f"HTTP client started (timeout={self._timeout}s, "
            f"max_connections={self._limits.max_connections})"
        )
        return self._client

    async def stop(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    @property
    def client(self) -> httpx.AsyncClient:
        """
        The managed client.

        Raises:
            RuntimeError: If client is not started.
        """
        if self._client is None:
            raise RuntimeError(
                "HTTP client not started. Ensure lifespan context is properly configured."
            )
        return self._client

    @property
    def is_running(self) -> bool:
        return self._client is not None and not self._client.is_closed


@asynccontextmanager
async def create_http_client_context(
    app: "FastAPI",
    timeout: float = 30.0,
    max_connections: int = 100,
) -> AsyncGenerator[HttpClientManager, None]:
    """
    Bind a shared HTTP client to the FastAPI application lifespan.

    The client is published on ``app.state.http_client`` and removed again
    on exit.
    """
    manager = HttpClientManager(timeout=timeout, max_connections=max_connections)

    try:
        app.state.http_client = await manager.start()
        app.state.http_client_manager = manager
        yield manager
    finally:
        await manager.stop()
        for attr in ("http_client", "http_client_manager"):
            if hasattr(app.state, attr):
                delattr(app.state, attr)


@asynccontextmanager
async def create_standalone_http_client(
    timeout: float = 30.0,
    max_connections: int = 10,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Short-lived client for connectivity probes and background sync.

    Yields:
        httpx.AsyncClient bound to the caller's event loop.
    """
    client = httpx.AsyncClient(
        timeout=timeout,
        limits=_build_limits(max_connections),
        follow_redirects=True,
    )
    logger.debug(f"Standalone HTTP client created (timeout={timeout}s)")

    try:
        yield client
    finally:
        await client.aclose()
        logger.debug("Standalone HTTP client closed")


def get_http_client_from_app(app: "FastAPI") -> httpx.AsyncClient:
    """
    Get HTTP client from FastAPI app state.

    Raises:
        RuntimeError: If HTTP client is not configured.
    """
    if not hasattr(app.state, "http_client"):
        raise RuntimeError(
            "HTTP client not available. Ensure lifespan context is properly configured."
        )
    return app.state.http_client

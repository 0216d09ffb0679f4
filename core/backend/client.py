"""
Backend REST Client.

Low-level HTTP client for the backend-as-a-service table API (PostgREST).
The remote relational store owns durable state, uniqueness and foreign-key
constraints, and row-level security (RLS). This client only speaks
request/response CRUD against it.

Design Principles:
    BackendClient requires httpx.AsyncClient via EXPLICIT dependency injection.
    The HTTP client lifecycle is managed by the caller.

    Usage in FastAPI routes:
        @router.get("/employees")
        async def list_employees(backend: BackendDep):
            return await backend.select("employees", order="employee_number")

    Usage in background tasks:
        from core.http_client import create_standalone_http_client

        async with create_standalone_http_client() as http_client:
            backend = BackendClient(http_client, base_url=url, anon_key=key)
            await backend.delete("employees", {"id": employee_id})
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from core.app_context import ConfigLoader
from core.backend.exceptions import (
    BackendAuthError,
    BackendConfigurationError,
    BackendConnectionError,
    BackendRequestError,
)

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


class BackendClient:
    """
    Table API client for the backend-as-a-service.

    Requests carry the project ``apikey`` and an ``Authorization`` bearer.
    The bearer is the signed-in user's access token when one is bound
    (so RLS applies), otherwise the anon key.

    Args:
        http_client: Shared httpx.AsyncClient (required).
        base_url: Backend project URL. If not provided, loads from config.
        anon_key: Project anon key. If not provided, loads from config.
        access_token: Optional user JWT used as the bearer.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        if http_client is None:
            raise ValueError(
                "http_client is required. Use dependency injection via BackendDep "
                "in FastAPI routes, or create_standalone_http_client() for background tasks."
            )

        self._client = http_client
        self._timeout = timeout
        self._access_token = access_token

        if not base_url or not anon_key:
            config = ConfigLoader()
            config.load()
            backend_config = config.get("backend", {})
            base_url = base_url or backend_config.get("url", "")
            anon_key = anon_key or backend_config.get("anon_key", "")

        self._base_url = (base_url or "").rstrip("/")
        self._anon_key = anon_key or ""

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def with_token(self, access_token: Optional[str]) -> "BackendClient":
        """Return a client sharing the same HTTP client but acting as another user."""
        return BackendClient(
            self._client,
            base_url=self._base_url,
            anon_key=self._anon_key,
            access_token=access_token,
            timeout=self._timeout,
        )

    def is_configured(self) -> bool:
        """Check if the client is properly configured."""
        return bool(self._base_url and self._anon_key)

    def _get_headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._access_token or self._anon_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _table_url(self, table: str) -> str:
        return f"{self._base_url}{REST_PATH}/{table.lstrip('/')}"

    @staticmethod
    def _match_params(match: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """Translate ``{"id": x}`` into PostgREST ``id=eq.x`` filters."""
        params: Dict[str, str] = {}
        for column, value in (match or {}).items():
            if value is None:
                params[column] = "is.null"
            else:
                params[column] = f"eq.{value}"
        return params

    def _ensure_configured(self) -> None:
        if not self.is_configured():
            raise BackendConfigurationError(
                "Backend not configured. Set BACKEND_URL and BACKEND_ANON_KEY."
            )

    @staticmethod
    def _raise_for_response(response: httpx.Response) -> None:
        """Map an error response to a typed BackendError."""
        if response.status_code < 400:
            return

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        message = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or payload.get("error")
            or response.text
            or f"HTTP {response.status_code}"
        )

        if response.status_code in (401, 403):
            raise BackendAuthError(str(message), status_code=response.status_code)

        code = payload.get("code") or payload.get("error_code")
        raise BackendRequestError(
            str(message),
            status_code=response.status_code,
            code=str(code) if code is not None else None,
            details=payload.get("details"),
            hint=payload.get("hint"),
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        self._ensure_configured()
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._get_headers(prefer),
                timeout=self._timeout,
            )
        except httpx.TransportError as e:
            logger.warning(f"Backend unreachable ({method} {url}): {e}")
            raise BackendConnectionError(f"Backend unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Backend API error: {response.status_code} - {response.text}")
        self._raise_for_response(response)
        return response

    # =========================================================================
    # Health
    # =========================================================================

    async def check_connection(self) -> dict:
        """
        Check backend reachability for connectivity probing and status pages.

        Returns:
            dict: {"status": "healthy" | "warning" | "error", "message": ..., "details": {...}}
        """
        if not self.is_configured():
            return {
                "status": "error",
                "message": "Not configured",
                "details": {
                    "Base URL": self._base_url or "Not set",
                    "API Key": "Not set",
                },
            }

        masked_key = f"****{self._anon_key[-4:]}" if len(self._anon_key) > 4 else "****"

        try:
            start_time = time.time()
            response = await self._client.get(
                f"{self._base_url}{REST_PATH}/",
                headers=self._get_headers(),
                timeout=min(self._timeout, 10.0),
            )
            latency_ms = int((time.time() - start_time) * 1000)
        except httpx.HTTPError as e:
            logger.debug(f"Backend health check failed: {e}")
            return {
                "status": "error",
                "message": "Connection failed",
                "details": {
                    "Base URL": self._base_url,
                    "API Key": masked_key,
                    "Error": str(e)[:50],
                },
            }

        details = {
            "Latency": f"{latency_ms}ms",
            "Base URL": self._base_url,
            "API Key": masked_key,
        }
        if response.status_code < 400:
            return {"status": "healthy", "message": "Connected", "details": details}
        if response.status_code == 401:
            details["Error"] = "Invalid API Key"
            return {"status": "error", "message": "Authentication failed", "details": details}
        return {"status": "warning", "message": f"HTTP {response.status_code}", "details": details}

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def select(
        self,
        table: str,
        columns: str = "*",
        order: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch rows from a table.

        Args:
            table: Table name (e.g., "employees").
            columns: PostgREST select expression, embedded resources allowed
                (e.g., "*,manager:manager_id(first_name,last_name)").
            order: Column to order by; append ".desc" for descending.
            filters: Equality filters (column: value).

        Returns:
            List of row dictionaries.
        """
        params: Dict[str, Any] = {"select": columns}
        if order:
            params["order"] = order if "." in order else f"{order}.asc"
        params.update(self._match_params(filters))

        response = await self._request("GET", self._table_url(table), params=params)
        data = response.json()
        return data if isinstance(data, list) else []

    async def insert(
        self,
        table: str,
        payload: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """
        Insert one row.

        Returns:
            The inserted rows as stored (defaults and triggers applied).
        """
        response = await self._request(
            "POST",
            self._table_url(table),
            json=payload,
            prefer="return=representation",
        )
        data = response.json() if response.content else []
        logger.debug(f"Inserted row into {table}")
        return data if isinstance(data, list) else [data]

    async def update(
        self,
        table: str,
        payload: Dict[str, Any],
        match: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """
        Update rows matching ``match``.

        Returns:
            The updated rows.
        """
        if not match:
            raise ValueError("update() requires a match filter")

        response = await self._request(
            "PATCH",
            self._table_url(table),
            params=self._match_params(match),
            json=payload,
            prefer="return=representation",
        )
        data = response.json() if response.content else []
        logger.debug(f"Updated rows in {table} matching {list(match)}")
        return data if isinstance(data, list) else [data]

    async def delete(
        self,
        table: str,
        match: Dict[str, Any],
    ) -> None:
        """Delete rows matching ``match``."""
        if not match:
            raise ValueError("delete() requires a match filter")

        await self._request(
            "DELETE",
            self._table_url(table),
            params=self._match_params(match),
        )
        logger.debug(f"Deleted rows from {table} matching {list(match)}")


def create_backend_client(
    http_client: httpx.AsyncClient,
    access_token: Optional[str] = None,
) -> BackendClient:
    """
    Factory function to create BackendClient from configuration.

    Args:
        http_client: HTTP client instance (REQUIRED).
        access_token: Optional user JWT so RLS policies apply.
    """
    config = ConfigLoader()
    config.load()
    return BackendClient(
        http_client=http_client,
        base_url=config.get("backend.url", ""),
        anon_key=config.get("backend.anon_key", ""),
        access_token=access_token,
        timeout=config.get("backend.timeout", 30.0),
    )

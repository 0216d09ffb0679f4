"""
Unit Tests for core.backend.client.

Uses httpx.MockTransport so requests go through a real AsyncClient.
"""

import json

import httpx
import pytest

from core.backend import (
    BackendAuthError,
    BackendClient,
    BackendConfigurationError,
    BackendConnectionError,
    BackendRequestError,
)

BASE_URL = "https://project.backend.test"
ANON_KEY = "anon-key-abcd"


def _client(handler, access_token=None) -> tuple[BackendClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = BackendClient(
        http_client,
        base_url=BASE_URL,
        anon_key=ANON_KEY,
        access_token=access_token,
    )
    return backend, http_client


class TestHeaders:
    """Tests for request headers."""

    @pytest.mark.asyncio
    async def test_anon_bearer_by_default(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        backend, http_client = _client(handler)
        async with http_client:
            await backend.select("employees")

        assert seen["apikey"] == ANON_KEY
        assert seen["authorization"] == f"Bearer {ANON_KEY}"

    @pytest.mark.asyncio
    async def test_with_token_uses_user_jwt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json=[])

        backend, http_client = _client(handler)
        async with http_client:
            await backend.with_token("user-jwt").select("employees")

        assert seen["apikey"] == ANON_KEY
        assert seen["authorization"] == "Bearer user-jwt"
        assert backend.access_token is None


class TestCrud:
    """Tests for table operations."""

    @pytest.mark.asyncio
    async def test_select_params(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": "1"}])

        backend, http_client = _client(handler)
        async with http_client:
            rows = await backend.select(
                "employees",
                columns="*,manager:manager_id(first_name,last_name)",
                order="employee_number",
                filters={"id": "abc", "manager_id": None},
            )

        assert rows == [{"id": "1"}]
        assert captured["path"] == "/rest/v1/employees"
        assert captured["params"] == {
            "select": "*,manager:manager_id(first_name,last_name)",
            "order": "employee_number.asc",
            "id": "eq.abc",
            "manager_id": "is.null",
        }

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["prefer"] = request.headers.get("prefer")
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json=[{"id": "new", **captured["body"]}])

        backend, http_client = _client(handler)
        async with http_client:
            rows = await backend.insert("employees", {"employee_number": "E1"})

        assert captured["method"] == "POST"
        assert captured["prefer"] == "return=representation"
        assert rows == [{"id": "new", "employee_number": "E1"}]

    @pytest.mark.asyncio
    async def test_update_and_delete_filters(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append((request.method, dict(request.url.params)))
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(200, json=[{"id": "x"}])

        backend, http_client = _client(handler)
        async with http_client:
            await backend.update("employees", {"role": "Lead"}, {"id": "x"})
            await backend.delete("employees", {"id": "x"})

        assert calls == [("PATCH", {"id": "eq.x"}), ("DELETE", {"id": "eq.x"})]

    @pytest.mark.asyncio
    async def test_update_requires_match(self):
        backend, http_client = _client(lambda r: httpx.Response(200, json=[]))
        async with http_client:
            with pytest.raises(ValueError):
                await backend.update("employees", {"role": "x"}, {})
            with pytest.raises(ValueError):
                await backend.delete("employees", {})


class TestErrors:
    """Tests for error classification."""

    @pytest.mark.asyncio
    async def test_duplicate_key(self):
        def handler(request):
            return httpx.Response(409, json={
                "code": "23505",
                "message": 'duplicate key value violates unique constraint "employees_employee_number_key"',
                "details": "Key (employee_number)=(E1) already exists.",
                "hint": None,
            })

        backend, http_client = _client(handler)
        async with http_client:
            with pytest.raises(BackendRequestError) as exc_info:
                await backend.insert("employees", {"employee_number": "E1"})

        error = exc_info.value
        assert error.status_code == 409
        assert error.is_duplicate_key is True
        assert error.is_self_manager_violation is False
        assert "already exists" in error.details

    @pytest.mark.asyncio
    async def test_self_manager_trigger(self):
        def handler(request):
            return httpx.Response(400, json={
                "code": "P0001",
                "message": "An employee cannot be their own manager",
            })

        backend, http_client = _client(handler)
        async with http_client:
            with pytest.raises(BackendRequestError) as exc_info:
                await backend.update("employees", {"manager_id": "x"}, {"id": "x"})

        assert exc_info.value.is_self_manager_violation is True
        assert exc_info.value.is_duplicate_key is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_errors(self, status_code):
        backend, http_client = _client(
            lambda r: httpx.Response(status_code, json={"message": "JWT expired"})
        )
        async with http_client:
            with pytest.raises(BackendAuthError) as exc_info:
                await backend.select("employees")

        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend, http_client = _client(handler)
        async with http_client:
            with pytest.raises(BackendConnectionError):
                await backend.select("employees")

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        monkeypatch.setattr("core.backend.client.ConfigLoader.load", lambda self, env_path=None: None)
        async with httpx.AsyncClient() as http_client:
            backend = BackendClient(http_client)
            assert backend.is_configured() is False
            with pytest.raises(BackendConfigurationError):
                await backend.select("employees")

    def test_requires_http_client(self):
        with pytest.raises(ValueError):
            BackendClient(None, base_url=BASE_URL, anon_key=ANON_KEY)


class TestCheckConnection:
    """Tests for check_connection()."""

    @pytest.mark.asyncio
    async def test_healthy(self):
        backend, http_client = _client(lambda r: httpx.Response(200, json={}))
        async with http_client:
            health = await backend.check_connection()

        assert health["status"] == "healthy"
        assert health["details"]["API Key"] == "****abcd"

    @pytest.mark.asyncio
    async def test_invalid_key(self):
        backend, http_client = _client(lambda r: httpx.Response(401, json={}))
        async with http_client:
            health = await backend.check_connection()

        assert health["status"] == "error"
        assert health["details"]["Error"] == "Invalid API Key"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        backend, http_client = _client(handler)
        async with http_client:
            health = await backend.check_connection()

        assert health["status"] == "error"
        assert health["message"] == "Connection failed"

    @pytest.mark.asyncio
    async def test_other_status_is_warning(self):
        backend, http_client = _client(lambda r: httpx.Response(503, json={}))
        async with http_client:
            health = await backend.check_connection()

        assert health["status"] == "warning"

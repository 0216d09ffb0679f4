"""
Pytest Configuration and Shared Fixtures.

Provides common test fixtures for framework unit tests.
"""

from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing."""
    env_vars = {
        "SERVER_HOST": "127.0.0.1",
        "SERVER_PORT": "8000",
        "BASE_URL": "https://test.example.com",
        "APP_DEBUG": "true",
        "APP_LOG_LEVEL": "DEBUG",
        "BACKEND_URL": "https://project.backend.test",
        "BACKEND_ANON_KEY": "test-anon-key-12345",
        "BACKEND_JWT_SECRET": "test-jwt-secret-with-enough-length-1234",
        "BACKEND_JWT_ALGORITHM": "HS256",
        "BACKEND_TIMEOUT": "15",
        "CACHE_DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    return env_vars


@pytest.fixture
def config_loader(mock_env_vars):
    """Create a ConfigLoader instance with mock environment."""
    from core.app_context import ConfigLoader

    loader = ConfigLoader()
    loader.load()
    return loader


@pytest.fixture
def app_context(mock_env_vars):
    """Create an AppContext instance with mock environment."""
    from core.app_context import AppContext

    return AppContext()


@pytest.fixture(autouse=True)
def reset_active_session():
    """Forget any remembered session between tests."""
    from core.backend import reset_session_holder

    reset_session_holder()
    yield
    reset_session_holder()


# =============================================================================
# Module Fixtures
# =============================================================================


class MockModule:
    """Mock module implementation for testing."""

    def __init__(self, name: str = "mock_module"):
        self._name = name
        self._initialized = False
        self._shutdown = False
        self.started = False
        self.stopped = False

    def get_module_name(self) -> str:
        return self._name

    def on_entry(self, context) -> None:
        self._initialized = True

    def handle_event(self, context, event: dict) -> dict | None:
        return {"handled": True, "module": self._name}

    async def async_startup(self) -> None:
        self.started = True

    async def async_shutdown(self) -> None:
        self.stopped = True

    def get_api_router(self):
        return None

    def get_status(self) -> dict:
        return {"status": "healthy", "details": {}}

    def on_shutdown(self) -> None:
        self._shutdown = True


@pytest.fixture
def mock_module():
    """Create a mock module instance."""
    return MockModule()


@pytest.fixture
def mock_module_factory():
    """Factory for creating mock modules with custom names."""
    def _create(name: str):
        return MockModule(name)
    return _create


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest.fixture
def mock_httpx_response_factory() -> Callable[..., MagicMock]:
    """
    Factory fixture for creating mock httpx responses.

    Returns a callable that creates mock responses with customizable properties.
    """
    def _create_response(
        status_code: int = 200,
        json_data: dict | list | None = None,
        text: str | None = None,
    ) -> MagicMock:
        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.is_success = 200 <= status_code < 300
        mock_response.json.return_value = json_data if json_data is not None else {}
        mock_response.text = text or str(json_data)
        mock_response.content = b"" if json_data is None and text is None else b"x"
        return mock_response

    return _create_response


@pytest.fixture
def mock_async_client() -> MagicMock:
    """Create a mock async httpx client."""
    mock_client = MagicMock()
    mock_client.request = AsyncMock()
    mock_client.get = AsyncMock()
    mock_client.post = AsyncMock()
    mock_client.aclose = AsyncMock()
    return mock_client

"""
Conftest for Directory Module Tests.

Provides shared fixtures for unit testing the directory module.
"""

from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.database.base import Base
import modules.directory.models  # noqa: F401 - registers cache tables
from modules.directory.services.cache import EmployeeCache


# =============================================================================
# Cache database
# =============================================================================


@pytest_asyncio.fixture
async def cache_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(cache_engine):
    """Session factory bound to the in-memory cache."""
    return async_sessionmaker(bind=cache_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def cache(session_factory):
    """EmployeeCache over the in-memory database."""
    return EmployeeCache(session_factory)


# =============================================================================
# Collaborators
# =============================================================================


class FakeMonitor:
    """ConnectivityMonitor stand-in with a settable online flag."""

    def __init__(self, online: bool = True) -> None:
        self.is_online = online
        self.failures = 0
        self.successes = 0
        self.checks = 0

    async def report_failure(self) -> None:
        self.failures += 1
        self.is_online = False

    async def report_success(self) -> None:
        self.successes += 1
        self.is_online = True

    async def check_now(self) -> bool:
        self.checks += 1
        return self.is_online

    def status(self):
        from modules.directory.services.connectivity import ConnectivityStatus
        return ConnectivityStatus(online=self.is_online)


@pytest.fixture
def online_monitor():
    return FakeMonitor(online=True)


@pytest.fixture
def offline_monitor():
    return FakeMonitor(online=False)


@pytest.fixture
def mock_backend():
    """BackendClient with async table operations."""
    backend = MagicMock()
    backend.select = AsyncMock(return_value=[])
    backend.insert = AsyncMock(return_value=[])
    backend.update = AsyncMock(return_value=[])
    backend.delete = AsyncMock(return_value=None)
    return backend


# =============================================================================
# Sample data
# =============================================================================


def make_employee(
    employee_id: str,
    employee_number: str,
    first_name: str,
    last_name: str = "Doe",
    manager_id: Optional[str] = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Employee record as the remote store returns it."""
    record = {
        "id": employee_id,
        "employee_number": employee_number,
        "first_name": first_name,
        "last_name": last_name,
        "email": f"{first_name.lower()}@example.com",
        "birth_date": "1990-01-15",
        "salary": 50000.0,
        "role": "Engineer",
        "manager_id": manager_id,
        "manager": None,
        "created_at": "2025-10-07T14:16:37+00:00",
        "updated_at": "2025-10-07T14:16:37+00:00",
    }
    record.update(overrides)
    return record


@pytest.fixture
def sample_employees():
    """Small org: Alice manages Bob and Carol; Carol manages Dave."""
    return [
        make_employee("id-alice", "E001", "Alice", role="CEO", salary=200000.0),
        make_employee(
            "id-bob", "E002", "Bob", manager_id="id-alice",
            manager={"first_name": "Alice", "last_name": "Doe"},
        ),
        make_employee(
            "id-carol", "E003", "Carol", manager_id="id-alice", role="Manager",
            manager={"first_name": "Alice", "last_name": "Doe"},
        ),
        make_employee(
            "id-dave", "E004", "Dave", manager_id="id-carol", email=None,
            manager={"first_name": "Carol", "last_name": "Doe"},
        ),
    ]


@pytest.fixture
def valid_form():
    """Edit dialog input that passes validation."""
    return {
        "employee_number": "E100",
        "first_name": "Erin",
        "last_name": "Smith",
        "email": "erin@example.com",
        "birth_date": "1992-03-04",
        "salary": "65000",
        "role": "Designer",
        "manager_id": "none",
    }


@pytest.fixture
def employee_factory():
    """Build employee records in tests."""
    return make_employee

"""
Unit Tests for DirectoryService.

Covers the cache-first listing, sorting and the online/offline paths of
every mutation. The cache is a real in-memory SQLite mirror; the backend
is mocked.
"""

import asyncio
from datetime import date

import pytest

from core.backend import BackendConnectionError, BackendRequestError
from modules.directory.schemas.employee import Employee
from modules.directory.services.directory import (
    DirectoryService,
    SortState,
    filter_and_sort,
    to_view,
)
from modules.directory.services.exceptions import (
    DirectoryOperationError,
    EmployeeConflictError,
    EmployeeNotFoundError,
    EmployeeValidationError,
)


def _duplicate_error():
    return BackendRequestError(
        'duplicate key value violates unique constraint "employees_employee_number_key"',
        status_code=409,
        code="23505",
    )


def _self_manager_error():
    return BackendRequestError(
        "An employee cannot be their own manager",
        status_code=400,
        code="P0001",
    )


@pytest.fixture
def service(cache, online_monitor):
    return DirectoryService(cache, online_monitor)


@pytest.fixture
def offline_service(cache, offline_monitor):
    return DirectoryService(cache, offline_monitor)


# =============================================================================
# Listing
# =============================================================================


class TestFetchEmployees:
    """Tests for fetch_employees()."""

    @pytest.mark.asyncio
    async def test_online_fetch_replaces_cache(self, service, cache, mock_backend, sample_employees):
        """Remote rows are returned and mirrored."""
        mock_backend.select.return_value = sample_employees

        result = await service.fetch_employees(mock_backend)

        assert result.source == "remote"
        assert result.notice is None
        assert [e.id for e in result.employees] == ["id-alice", "id-bob", "id-carol", "id-dave"]
        assert len(await cache.get_from_cache()) == 4

        args, kwargs = mock_backend.select.call_args
        assert args[0] == "employees"
        assert kwargs["columns"] == "*,manager:manager_id(first_name,last_name)"
        assert kwargs["order"] == "employee_number"

    @pytest.mark.asyncio
    async def test_remote_error_with_cache(self, service, cache, mock_backend, sample_employees):
        """Remote errors fall back to the mirror."""
        await cache.save_to_cache(sample_employees)
        mock_backend.select.side_effect = BackendRequestError("boom", status_code=500)

        result = await service.fetch_employees(mock_backend)

        assert result.source == "cache"
        assert len(result.employees) == 4
        assert result.notice.message == "Using cached data - sync failed"

    @pytest.mark.asyncio
    async def test_remote_error_without_cache(self, service, mock_backend):
        mock_backend.select.side_effect = BackendRequestError("boom", status_code=500)

        result = await service.fetch_employees(mock_backend)

        assert result.employees == []
        assert result.notice.level == "error"
        assert result.notice.message == "Failed to fetch employees"

    @pytest.mark.asyncio
    async def test_transport_error_marks_offline(self, service, online_monitor, mock_backend):
        mock_backend.select.side_effect = BackendConnectionError("unreachable")

        await service.fetch_employees(mock_backend)

        assert online_monitor.is_online is False

    @pytest.mark.asyncio
    async def test_offline_with_cache(self, offline_service, cache, mock_backend, sample_employees):
        """Offline reads come from the mirror without touching the backend."""
        await cache.save_to_cache(sample_employees)

        result = await offline_service.fetch_employees(mock_backend)

        assert result.source == "cache"
        assert result.notice.level == "info"
        assert result.notice.message == "Viewing cached data (offline mode)"
        mock_backend.select.assert_not_called()

    @pytest.mark.asyncio
    async def test_offline_without_cache(self, offline_service, mock_backend):
        result = await offline_service.fetch_employees(mock_backend)

        assert result.employees == []
        assert result.notice.message == "No cached data available offline"

    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self, service, mock_backend, sample_employees):
        """Rows that do not parse are dropped, not fatal."""
        mock_backend.select.return_value = [*sample_employees, {"id": "broken"}]

        result = await service.fetch_employees(mock_backend)

        assert len(result.employees) == 4


class TestFilterAndSort:
    """Tests for filter_and_sort()."""

    @pytest.fixture
    def employees(self, employee_factory):
        records = [
            employee_factory("1", "E3", "carl", role="Engineer", salary=300.0),
            employee_factory("2", "E1", "Bea", role="Designer", salary=100.0, email=None),
            employee_factory("3", "E2", "adam", role="Manager", salary=200.0, birth_date="1980-05-01"),
        ]
        return [Employee.model_validate(r) for r in records]

    def test_default_sort_by_employee_number(self, employees):
        assert [e.employee_number for e in filter_and_sort(employees)] == ["E1", "E2", "E3"]

    def test_strings_case_insensitive(self, employees):
        rows = filter_and_sort(employees, sort_field="first_name")

        assert [e.first_name for e in rows] == ["adam", "Bea", "carl"]

    def test_numbers_descending(self, employees):
        rows = filter_and_sort(employees, sort_field="salary", direction="desc")

        assert [e.salary for e in rows] == [300.0, 200.0, 100.0]

    def test_dates_by_value(self, employees):
        rows = filter_and_sort(employees, sort_field="birth_date")

        assert rows[0].birth_date == date(1980, 5, 1)

    def test_nulls_last_in_both_directions(self, employees):
        asc = filter_and_sort(employees, sort_field="email", direction="asc")
        desc = filter_and_sort(employees, sort_field="email", direction="desc")

        assert asc[-1].email is None
        assert desc[-1].email is None

    def test_search_fields(self, employees):
        assert [e.id for e in filter_and_sort(employees, "DESIGN")] == ["2"]
        assert [e.id for e in filter_and_sort(employees, "e3")] == ["1"]
        assert [e.id for e in filter_and_sort(employees, "adam@")] == ["3"]
        assert filter_and_sort(employees, "zzz") == []


class TestSortState:
    def test_same_field_flips(self):
        state = SortState()

        assert state.toggled("employee_number") == SortState("employee_number", "desc")
        assert state.toggled("employee_number").toggled("employee_number") == state

    def test_new_field_resets_to_ascending(self):
        state = SortState("salary", "desc")

        assert state.toggled("role") == SortState("role", "asc")


class TestToView:
    def test_view_fields(self, sample_employees):
        view = to_view(Employee.model_validate(sample_employees[1]))

        assert view.initials == "BD"
        assert view.manager_name == "Alice Doe"
        assert view.avatar_url.endswith("?s=40&d=mp")

    def test_view_without_manager_or_email(self, sample_employees):
        record = dict(sample_employees[0], email=None)

        view = to_view(Employee.model_validate(record), avatar_size=96)

        assert view.manager_name is None
        assert view.avatar_url == "https://www.gravatar.com/avatar/?s=96&d=mp"


class TestListManagers:
    @pytest.mark.asyncio
    async def test_online_excludes_current(self, service, mock_backend, sample_employees):
        mock_backend.select.return_value = sample_employees

        managers = await service.list_managers(mock_backend, exclude_id="id-bob")

        assert "id-bob" not in [m.id for m in managers]
        assert mock_backend.select.call_args.kwargs["order"] == "first_name"

    @pytest.mark.asyncio
    async def test_offline_uses_cache_ordered_by_first_name(
        self, offline_service, cache, mock_backend, sample_employees
    ):
        await cache.save_to_cache(list(reversed(sample_employees)))

        managers = await offline_service.list_managers(mock_backend)

        assert [m.first_name for m in managers] == ["Alice", "Bob", "Carol", "Dave"]
        mock_backend.select.assert_not_called()


# =============================================================================
# Mutations
# =============================================================================


class TestCreateEmployee:
    """Tests for create_employee()."""

    @pytest.mark.asyncio
    async def test_online_success(self, service, cache, mock_backend, valid_form):
        mock_backend.insert.return_value = [
            {"id": "srv-1", **{k: v for k, v in valid_form.items() if k != "manager_id"},
             "salary": 65000.0, "manager_id": None}
        ]

        result = await service.create_employee(mock_backend, valid_form)

        assert result.queued is False
        assert result.notice.message == "Employee created successfully"
        payload = mock_backend.insert.call_args.args[1]
        assert "id" not in payload
        assert payload["manager_id"] is None
        assert await cache.get_cached_employee("srv-1") is not None
        assert await cache.count_pending_operations() == 0

    @pytest.mark.asyncio
    async def test_duplicate_key(self, service, mock_backend, valid_form):
        mock_backend.insert.side_effect = _duplicate_error()

        with pytest.raises(EmployeeConflictError, match="Employee number already exists"):
            await service.create_employee(mock_backend, valid_form)

    @pytest.mark.asyncio
    async def test_self_manager(self, service, mock_backend, valid_form):
        mock_backend.insert.side_effect = _self_manager_error()

        with pytest.raises(EmployeeConflictError, match="cannot be their own manager"):
            await service.create_employee(mock_backend, valid_form)

    @pytest.mark.asyncio
    async def test_other_backend_error(self, service, mock_backend, valid_form):
        mock_backend.insert.side_effect = BackendRequestError("nope", status_code=400)

        with pytest.raises(DirectoryOperationError, match="Failed to create employee"):
            await service.create_employee(mock_backend, valid_form)

    @pytest.mark.asyncio
    async def test_validation_error(self, service, mock_backend, valid_form):
        valid_form["role"] = ""

        with pytest.raises(EmployeeValidationError, match="Role is required"):
            await service.create_employee(mock_backend, valid_form)
        mock_backend.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_offline_queues_with_client_id(
        self, offline_service, cache, mock_backend, valid_form, sample_employees
    ):
        """Offline creates get a UUID, land in the mirror and are queued."""
        await cache.save_to_cache(sample_employees)
        valid_form["manager_id"] = "id-alice"

        result = await offline_service.create_employee(mock_backend, valid_form)

        assert result.queued is True
        assert result.notice.message == "Employee created (will sync when online)"
        new_id = result.employee.id
        assert len(new_id) == 36
        cached = await cache.get_cached_employee(new_id)
        assert cached["manager"] == {"first_name": "Alice", "last_name": "Doe"}
        ops = await cache.get_pending_operations()
        assert [op["operation"] for op in ops] == ["create"]
        assert ops[0]["employee"]["id"] == new_id
        mock_backend.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_transport_failure_falls_back_to_queue(
        self, service, online_monitor, cache, mock_backend, valid_form
    ):
        mock_backend.insert.side_effect = BackendConnectionError("unreachable")

        result = await service.create_employee(mock_backend, valid_form)

        assert result.queued is True
        assert online_monitor.is_online is False
        assert await cache.count_pending_operations() == 1


class TestUpdateEmployee:
    """Tests for update_employee()."""

    @pytest.mark.asyncio
    async def test_online_success(self, service, mock_backend, valid_form, employee_factory):
        mock_backend.update.return_value = [employee_factory("id-bob", "E100", "Erin")]

        result = await service.update_employee(mock_backend, "id-bob", valid_form)

        assert result.notice.message == "Employee updated successfully"
        args = mock_backend.update.call_args.args
        assert args[2] == {"id": "id-bob"}
        assert "id" not in args[1]

    @pytest.mark.asyncio
    async def test_self_manager_rejected_locally(self, service, mock_backend, valid_form):
        valid_form["manager_id"] = "id-bob"

        with pytest.raises(EmployeeConflictError, match="An employee cannot be their own manager"):
            await service.update_employee(mock_backend, "id-bob", valid_form)
        mock_backend.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_self_manager_from_backend(self, service, mock_backend, valid_form):
        mock_backend.update.side_effect = _self_manager_error()

        with pytest.raises(EmployeeConflictError):
            await service.update_employee(mock_backend, "id-bob", valid_form)

    @pytest.mark.asyncio
    async def test_other_error(self, service, mock_backend, valid_form):
        mock_backend.update.side_effect = BackendRequestError("nope", status_code=400)

        with pytest.raises(DirectoryOperationError, match="Failed to update employee"):
            await service.update_employee(mock_backend, "id-bob", valid_form)

    @pytest.mark.asyncio
    async def test_no_rows_is_not_found(self, service, mock_backend, valid_form):
        mock_backend.update.return_value = []

        with pytest.raises(EmployeeNotFoundError):
            await service.update_employee(mock_backend, "missing", valid_form)

    @pytest.mark.asyncio
    async def test_offline_merges_and_queues(
        self, offline_service, cache, mock_backend, valid_form, sample_employees
    ):
        """Offline updates merge into the cached record and queue it."""
        await cache.save_to_cache(sample_employees)
        valid_form["manager_id"] = "id-carol"

        result = await offline_service.update_employee(mock_backend, "id-bob", valid_form)

        assert result.queued is True
        assert result.notice.message == "Employee updated (will sync when online)"
        cached = await cache.get_cached_employee("id-bob")
        assert cached["first_name"] == "Erin"
        assert cached["created_at"] == sample_employees[1]["created_at"]
        assert cached["manager"] == {"first_name": "Carol", "last_name": "Doe"}
        ops = await cache.get_pending_operations()
        assert ops[0]["operation"] == "update"
        assert ops[0]["employee"]["id"] == "id-bob"

    @pytest.mark.asyncio
    async def test_offline_unknown_id(self, offline_service, mock_backend, valid_form):
        with pytest.raises(EmployeeNotFoundError):
            await offline_service.update_employee(mock_backend, "missing", valid_form)


class TestDeleteEmployee:
    """Tests for delete_employee()."""

    @pytest.mark.asyncio
    async def test_online_success(self, service, cache, mock_backend, sample_employees):
        await cache.save_to_cache(sample_employees)

        result = await service.delete_employee(mock_backend, "id-dave")

        assert result.notice.message == "Employee deleted successfully"
        mock_backend.delete.assert_awaited_once_with("employees", {"id": "id-dave"})
        assert await cache.get_cached_employee("id-dave") is None

    @pytest.mark.asyncio
    async def test_online_failure(self, service, mock_backend):
        mock_backend.delete.side_effect = BackendRequestError("rls", status_code=400)

        with pytest.raises(DirectoryOperationError, match="Failed to delete employee"):
            await service.delete_employee(mock_backend, "id-dave")

    @pytest.mark.asyncio
    async def test_offline_deletes_locally_and_queues(
        self, offline_service, cache, mock_backend, sample_employees
    ):
        await cache.save_to_cache(sample_employees)

        result = await offline_service.delete_employee(mock_backend, "id-dave")

        assert result.queued is True
        assert result.notice.message == "Employee deleted (will sync when online)"
        assert await cache.get_cached_employee("id-dave") is None
        ops = await cache.get_pending_operations()
        assert ops[0]["operation"] == "delete"
        assert ops[0]["employee"]["id"] == "id-dave"

    @pytest.mark.asyncio
    async def test_offline_unknown_id(self, offline_service, mock_backend):
        with pytest.raises(EmployeeNotFoundError):
            await offline_service.delete_employee(mock_backend, "missing")


# =============================================================================
# Sync / status
# =============================================================================


class TestReconnect:
    @pytest.mark.asyncio
    async def test_offline_changes_replayed_on_reconnect(
        self, cache, offline_monitor, mock_backend, valid_form, sample_employees
    ):
        """Queued offline edits are replayed and the mirror refreshed."""
        from contextlib import asynccontextmanager

        @asynccontextmanager
        async def factory():
            yield mock_backend

        service = DirectoryService(cache, offline_monitor, backend_factory=factory)
        await cache.save_to_cache(sample_employees)
        await service.delete_employee(mock_backend, "id-dave")

        mock_backend.select.return_value = sample_employees[:3]
        offline_monitor.is_online = True
        await service.handle_connectivity_change(True)
        await service.reconnect_task

        mock_backend.delete.assert_awaited_once_with("employees", {"id": "id-dave"})
        assert await cache.count_pending_operations() == 0
        assert service.sync_engine.last_result.status == "synced"
        assert len(await cache.get_from_cache()) == 3

    @pytest.mark.asyncio
    async def test_reconnect_replay_runs_in_background(
        self, cache, online_monitor, mock_backend, employee_factory
    ):
        """The callback returns before the replay finishes."""
        from contextlib import asynccontextmanager

        release = asyncio.Event()

        async def slow_delete(*args, **kwargs):
            await release.wait()

        @asynccontextmanager
        async def factory():
            yield mock_backend

        mock_backend.delete.side_effect = slow_delete
        service = DirectoryService(cache, online_monitor, backend_factory=factory)
        await cache.add_pending_operation("delete", employee_factory("a", "E1", "A"))

        await service.handle_connectivity_change(True)

        assert service.reconnect_task is not None
        assert not service.reconnect_task.done()
        assert await cache.count_pending_operations() == 1

        release.set()
        result = await service.reconnect_task
        assert result.status == "synced"
        assert await cache.count_pending_operations() == 0

    @pytest.mark.asyncio
    async def test_manual_sync_joins_reconnect_replay(
        self, cache, online_monitor, mock_backend, employee_factory
    ):
        """A manual sync during a reconnect replay gets that replay's outcome."""
        from contextlib import asynccontextmanager

        @asynccontextmanager
        async def factory():
            yield mock_backend

        service = DirectoryService(cache, online_monitor, backend_factory=factory)
        await cache.add_pending_operation("create", employee_factory("a", "E1", "A"))

        await service.handle_connectivity_change(True)
        result = await service.sync(mock_backend)

        assert result.status == "synced"
        assert result.synced == 1
        mock_backend.insert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_cancels_reconnect_replay(
        self, cache, online_monitor, mock_backend, employee_factory
    ):
        from contextlib import asynccontextmanager

        async def hang(*args, **kwargs):
            await asyncio.Event().wait()

        @asynccontextmanager
        async def factory():
            yield mock_backend

        mock_backend.delete.side_effect = hang
        service = DirectoryService(cache, online_monitor, backend_factory=factory)
        await cache.add_pending_operation("delete", employee_factory("a", "E1", "A"))
        await service.handle_connectivity_change(True)
        task = service.reconnect_task

        await service.close()

        assert task.cancelled()
        assert service.reconnect_task is None
        assert await cache.count_pending_operations() == 1

    @pytest.mark.asyncio
    async def test_going_offline_does_nothing(self, service, mock_backend):
        await service.handle_connectivity_change(False)

        assert service.sync_engine.last_result is None

    @pytest.mark.asyncio
    async def test_auto_sync_disabled(self, cache, online_monitor, employee_factory):
        service = DirectoryService(cache, online_monitor, auto_sync_on_reconnect=False)
        await cache.add_pending_operation("delete", employee_factory("a", "E1", "A"))

        await service.handle_connectivity_change(True)

        assert await cache.count_pending_operations() == 1

    @pytest.mark.asyncio
    async def test_status(self, offline_service, cache, employee_factory):
        await cache.add_pending_operation("delete", employee_factory("a", "E1", "A"))

        status = await offline_service.status()

        assert status.online is False
        assert status.syncing is False
        assert status.pending_count == 1

"""
Directory Service.

Cache-first employee listing and create/update/delete that fall back to
the local mirror plus the pending-operation queue while the remote store
is unreachable.

Flow:
    fetch_employees():
        1. Read the local mirror.
        2. Online: fetch remote, replace the mirror, return remote rows.
        3. Remote error: keep the mirror and return a notice.
    create/update/delete:
        Online: write remote. A transport failure marks the monitor
        offline and the mutation takes the offline path.
        Offline: write the mirror and queue the operation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from core.backend import (
    BackendClient,
    BackendConnectionError,
    BackendError,
    BackendRequestError,
)
from modules.directory.schemas.employee import (
    Employee,
    EmployeeForm,
    EmployeeView,
    Notice,
    SortDirection,
    first_error_message,
)
from modules.directory.services.cache import EmployeeCache
from modules.directory.services.connectivity import ConnectivityMonitor
from modules.directory.services.exceptions import (
    DirectoryOperationError,
    EmployeeConflictError,
    EmployeeNotFoundError,
    EmployeeValidationError,
)
from modules.directory.services.gravatar import get_gravatar_url, initials
from modules.directory.services.sync import BackendFactory, SyncEngine, SyncResult

logger = logging.getLogger(__name__)

LIST_COLUMNS = "*,manager:manager_id(first_name,last_name)"
SEARCH_FIELDS = ("first_name", "last_name", "employee_number", "role", "email")

SELF_MANAGER_ERROR = "An employee cannot be their own manager"
DUPLICATE_NUMBER_ERROR = "Employee number already exists"


@dataclass
class EmployeeListResult:
    """Employees plus where they came from and what to tell the user."""

    employees: list[Employee]
    source: str
    notice: Optional[Notice] = None


@dataclass
class MutationResult:
    """Outcome of a create/update/delete."""

    notice: Notice
    queued: bool = False
    employee: Optional[Employee] = None


@dataclass(frozen=True)
class SortState:
    """Current list sort; clicking a column yields the next state."""

    field: str = "employee_number"
    direction: SortDirection = "asc"

    def toggled(self, sort_field: str) -> "SortState":
        if sort_field == self.field:
            return SortState(sort_field, "desc" if self.direction == "asc" else "asc")
        return SortState(sort_field, "asc")


@dataclass
class DirectoryStatus:
    online: bool
    syncing: bool
    pending_count: int
    last_change: Optional[datetime] = None
    last_latency_ms: Optional[int] = None


def _sort_key_type(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return "str"
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, date):
        return "date"
    return None


def filter_and_sort(
    employees: Iterable[Employee],
    search: Optional[str] = None,
    sort_field: str = "employee_number",
    direction: SortDirection = "asc",
) -> list[Employee]:
    """
    Search then sort a listing.

    Search is a case-insensitive substring match on first name, last name,
    employee number, role and email. Nulls always sort last; strings compare
    case-insensitively; numbers and dates by value. Rows whose values are of
    mixed or other types keep their relative order.
    """
    rows = list(employees)

    if search:
        term = search.lower()
        rows = [
            e for e in rows
            if any(term in (getattr(e, f, None) or "").lower() for f in SEARCH_FIELDS)
        ]

    present = [e for e in rows if getattr(e, sort_field, None) is not None]
    missing = [e for e in rows if getattr(e, sort_field, None) is None]

    kinds = {_sort_key_type(getattr(e, sort_field)) for e in present}
    if len(kinds) == 1 and None not in kinds:
        kind = kinds.pop()
        if kind == "str":
            key = lambda e: getattr(e, sort_field).casefold()  # noqa: E731
        else:
            key = lambda e: getattr(e, sort_field)  # noqa: E731
        present.sort(key=key, reverse=(direction == "desc"))

    return present + missing


def to_view(employee: Employee, avatar_size: int = 40, default_image: str = "mp") -> EmployeeView:
    """Attach avatar and manager display fields."""
    manager_name = None
    if employee.manager is not None:
        manager_name = f"{employee.manager.first_name} {employee.manager.last_name}"
    return EmployeeView(
        **employee.model_dump(),
        avatar_url=get_gravatar_url(employee.email, avatar_size, default_image),
        initials=initials(employee.first_name, employee.last_name),
        manager_name=manager_name,
    )


class DirectoryService:
    """
    Employee directory over the remote store and the local cache.

    Args:
        cache: Local mirror and pending queue.
        monitor: Online/offline signal.
        backend_factory: Opens a client for background sync (reconnect).
        employees_table: Remote table name.
        auto_sync_on_reconnect: Replay the queue when the monitor comes back online.
    """

    def __init__(
        self,
        cache: EmployeeCache,
        monitor: ConnectivityMonitor,
        backend_factory: Optional[BackendFactory] = None,
        employees_table: str = "employees",
        auto_sync_on_reconnect: bool = True,
    ) -> None:
        self._cache = cache
        self._monitor = monitor
        self._table = employees_table
        self._auto_sync = auto_sync_on_reconnect
        self._sync_engine = SyncEngine(
            cache,
            backend_factory=backend_factory,
            employees_table=employees_table,
            monitor=monitor,
            refresh=self.refresh_from_remote,
        )
        self._reconnect_task: Optional[asyncio.Task[SyncResult]] = None

    @property
    def cache(self) -> EmployeeCache:
        return self._cache

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    @property
    def sync_engine(self) -> SyncEngine:
        return self._sync_engine

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse(records: Iterable[dict[str, Any]]) -> list[Employee]:
        employees = []
        for record in records:
            try:
                employees.append(Employee.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed employee record {record.get('id')}: {e}")
        return employees

    @staticmethod
    def _validate(form: Union[EmployeeForm, dict[str, Any]]) -> EmployeeForm:
        if isinstance(form, EmployeeForm):
            return form
        try:
            return EmployeeForm.model_validate(form)
        except ValidationError as e:
            raise EmployeeValidationError(first_error_message(e)) from e

    async def _manager_ref(self, manager_id: Optional[str]) -> Optional[dict[str, str]]:
        if not manager_id:
            return None
        manager = await self._cache.get_cached_employee(manager_id)
        if manager is None:
            return None
        return {"first_name": manager.get("first_name", ""), "last_name": manager.get("last_name", "")}

    async def _mirror(self, record: dict[str, Any]) -> None:
        """Best-effort write of a remote row into the mirror."""
        try:
            await self._cache.update_in_local_db(record)
        except SQLAlchemyError as e:
            logger.warning(f"Could not mirror employee {record.get('id')}: {e}")

    # =========================================================================
    # Listing
    # =========================================================================

    async def refresh_from_remote(self, backend: BackendClient) -> list[dict[str, Any]]:
        """Fetch the listing remotely and replace the mirror."""
        rows = await backend.select(self._table, columns=LIST_COLUMNS, order="employee_number")
        try:
            await self._cache.save_to_cache(rows)
        except SQLAlchemyError as e:
            logger.warning(f"Fetched {len(rows)} employee(s) but could not cache them: {e}")
        return rows

    async def fetch_employees(self, backend: BackendClient) -> EmployeeListResult:
        """Cache-first listing with remote refresh when online."""
        cached = await self._cache.get_from_cache()

        if not self._monitor.is_online:
            if not cached:
                return EmployeeListResult(
                    [], "none", Notice(level="error", message="No cached data available offline")
                )
            return EmployeeListResult(
                self._parse(cached),
                "cache",
                Notice(level="info", message="Viewing cached data (offline mode)"),
            )

        try:
            rows = await self.refresh_from_remote(backend)
        except BackendError as e:
            if isinstance(e, BackendConnectionError):
                await self._monitor.report_failure()
            logger.error(f"Failed to fetch employees: {e}")
            if not cached:
                return EmployeeListResult(
                    [], "none", Notice(level="error", message="Failed to fetch employees")
                )
            return EmployeeListResult(
                self._parse(cached),
                "cache",
                Notice(level="error", message="Using cached data - sync failed"),
            )

        await self._monitor.report_success()
        return EmployeeListResult(self._parse(rows), "remote")

    async def list_managers(
        self,
        backend: BackendClient,
        exclude_id: Optional[str] = None,
    ) -> list[Employee]:
        """Manager choices ordered by first name, without the employee being edited."""
        records: Optional[list[dict[str, Any]]] = None
        if self._monitor.is_online:
            try:
                records = await backend.select(self._table, order="first_name")
            except BackendConnectionError:
                await self._monitor.report_failure()
            except BackendError as e:
                logger.warning(f"Falling back to cached managers: {e}")

        if records is None:
            records = sorted(
                await self._cache.get_from_cache(),
                key=lambda r: (r.get("first_name") or "").casefold(),
            )

        return [e for e in self._parse(records) if e.id != exclude_id]

    # =========================================================================
    # Mutations
    # =========================================================================

    async def create_employee(
        self,
        backend: BackendClient,
        form: Union[EmployeeForm, dict[str, Any]],
    ) -> MutationResult:
        """
        Create an employee.

        Raises:
            EmployeeValidationError: Form invalid.
            EmployeeConflictError: Duplicate key or self-manager.
            DirectoryOperationError: Any other backend rejection.
        """
        data = self._validate(form)
        payload = data.to_payload()

        if self._monitor.is_online:
            try:
                rows = await backend.insert(self._table, payload)
            except BackendConnectionError:
                await self._monitor.report_failure()
            except BackendRequestError as e:
                if e.is_duplicate_key:
                    raise EmployeeConflictError(DUPLICATE_NUMBER_ERROR) from e
                if e.is_self_manager_violation:
                    raise EmployeeConflictError(SELF_MANAGER_ERROR) from e
                raise DirectoryOperationError("Failed to create employee") from e
            except BackendError as e:
                raise DirectoryOperationError("Failed to create employee") from e
            else:
                await self._monitor.report_success()
                created = None
                if rows:
                    record = {**rows[0], "manager": await self._manager_ref(rows[0].get("manager_id"))}
                    await self._mirror(record)
                    created = Employee.model_validate(record)
                return MutationResult(
                    Notice(level="success", message="Employee created successfully"),
                    employee=created,
                )

        record = {
            **payload,
            "id": str(uuid.uuid4()),
            "manager": await self._manager_ref(payload["manager_id"]),
        }
        await self._cache.add_to_local_db(record)
        await self._cache.add_pending_operation("create", record)
        return MutationResult(
            Notice(level="success", message="Employee created (will sync when online)"),
            queued=True,
            employee=Employee.model_validate(record),
        )

    async def update_employee(
        self,
        backend: BackendClient,
        employee_id: str,
        form: Union[EmployeeForm, dict[str, Any]],
    ) -> MutationResult:
        """
        Update an employee.

        Raises:
            EmployeeValidationError: Form invalid.
            EmployeeConflictError: Self-manager.
            EmployeeNotFoundError: Unknown id.
            DirectoryOperationError: Any other backend rejection.
        """
        data = self._validate(form)
        payload = data.to_payload()

        if payload["manager_id"] == employee_id:
            raise EmployeeConflictError(SELF_MANAGER_ERROR)

        if self._monitor.is_online:
            try:
                rows = await backend.update(self._table, payload, {"id": employee_id})
            except BackendConnectionError:
                await self._monitor.report_failure()
            except BackendRequestError as e:
                if e.is_self_manager_violation:
                    raise EmployeeConflictError(SELF_MANAGER_ERROR) from e
                if e.is_duplicate_key:
                    raise EmployeeConflictError(DUPLICATE_NUMBER_ERROR) from e
                raise DirectoryOperationError("Failed to update employee") from e
            except BackendError as e:
                raise DirectoryOperationError("Failed to update employee") from e
            else:
                await self._monitor.report_success()
                if not rows:
                    raise EmployeeNotFoundError("Employee not found")
                record = {**rows[0], "manager": await self._manager_ref(rows[0].get("manager_id"))}
                await self._mirror(record)
                return MutationResult(
                    Notice(level="success", message="Employee updated successfully"),
                    employee=Employee.model_validate(record),
                )

        existing = await self._cache.get_cached_employee(employee_id)
        if existing is None:
            raise EmployeeNotFoundError("Employee not found")

        record = {
            **existing,
            **payload,
            "id": employee_id,
            "manager": await self._manager_ref(payload["manager_id"]),
        }
        await self._cache.update_in_local_db(record)
        await self._cache.add_pending_operation("update", record)
        return MutationResult(
            Notice(level="success", message="Employee updated (will sync when online)"),
            queued=True,
            employee=Employee.model_validate(record),
        )

    async def delete_employee(self, backend: BackendClient, employee_id: str) -> MutationResult:
        """
        Delete an employee.

        Raises:
            EmployeeNotFoundError: Offline and the id is not in the mirror.
            DirectoryOperationError: Backend rejected the delete.
        """
        if self._monitor.is_online:
            try:
                await backend.delete(self._table, {"id": employee_id})
            except BackendConnectionError:
                await self._monitor.report_failure()
            except BackendError as e:
                raise DirectoryOperationError("Failed to delete employee") from e
            else:
                await self._monitor.report_success()
                try:
                    await self._cache.delete_from_local_db(employee_id)
                except SQLAlchemyError as e:
                    logger.warning(f"Could not remove employee {employee_id} from cache: {e}")
                return MutationResult(
                    Notice(level="success", message="Employee deleted successfully"),
                )

        existing = await self._cache.get_cached_employee(employee_id)
        if existing is None:
            raise EmployeeNotFoundError("Employee not found")

        await self._cache.delete_from_local_db(employee_id)
        await self._cache.add_pending_operation("delete", existing)
        return MutationResult(
            Notice(level="success", message="Employee deleted (will sync when online)"),
            queued=True,
        )

    # =========================================================================
    # Sync / status
    # =========================================================================

    async def sync(self, backend: Optional[BackendClient] = None) -> SyncResult:
        """
        Replay pending operations now.

        A reconnect replay already under way is joined rather than reported
        as busy, so the caller gets the outcome of the replay that ran.
        """
        task = self._reconnect_task
        if task is not None and not task.done():
            return await asyncio.shield(task)
        return await self._sync_engine.sync_pending_operations(backend)

    @property
    def reconnect_task(self) -> Optional["asyncio.Task[SyncResult]"]:
        return self._reconnect_task

    async def handle_connectivity_change(self, online: bool) -> None:
        """
        Monitor callback: replay the queue when the remote store returns.

        The replay runs as a task so the request that observed the
        transition is not held until it finishes.
        """
        if not online or not self._auto_sync:
            return
        if await self._cache.count_pending_operations() == 0:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        task = asyncio.get_running_loop().create_task(
            self._reconnect_sync(), name="directory_reconnect_sync"
        )
        task.add_done_callback(self._handle_reconnect_exit)
        self._reconnect_task = task

    async def _reconnect_sync(self) -> SyncResult:
        result = await self._sync_engine.sync_pending_operations()
        log = logger.info if result.success else logger.warning
        log(f"Reconnect sync: {result.status} ({result.synced}/{result.total}) {result.message or ''}")
        return result

    @staticmethod
    def _handle_reconnect_exit(task: "asyncio.Task[SyncResult]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Reconnect sync task failed: {exc}", exc_info=exc)

    async def close(self) -> None:
        """Cancel a reconnect replay still in flight."""
        task, self._reconnect_task = self._reconnect_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def status(self) -> DirectoryStatus:
        monitor_status = self._monitor.status()
        return DirectoryStatus(
            online=monitor_status.online,
            syncing=self._sync_engine.is_syncing,
            pending_count=await self._cache.count_pending_operations(),
            last_change=monitor_status.last_change,
            last_latency_ms=monitor_status.last_latency_ms,
        )


_directory_service: Optional[DirectoryService] = None


def get_directory_service() -> DirectoryService:
    """
    Get the DirectoryService built by the directory module.

    Raises:
        RuntimeError: If the module has not been initialized.
    """
    if _directory_service is None:
        raise RuntimeError("Directory service not initialized. Is the directory module loaded?")
    return _directory_service


def set_directory_service(service: Optional[DirectoryService]) -> None:
    """Install (or with None, drop) the process-wide DirectoryService."""
    global _directory_service
    _directory_service = service

"""
Pending Operation Sync Engine.

Replays mutations queued while offline against the remote store.

Replay Rules:
    - Operations run one at a time in queue order.
    - The first failure aborts the replay and leaves the queue untouched,
      so operations that already succeeded will be replayed again next time.
    - Only a fully successful replay clears the queue, after which the
      mirror is refreshed from the remote store. Operations queued while a
      replay is in flight are kept for the next one.
    - One replay at a time; a concurrent request reports "busy".
"""

import asyncio
import logging
import time
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional

from core.backend import BackendClient, BackendConnectionError, BackendError
from modules.directory.schemas.employee import WRITABLE_COLUMNS
from modules.directory.services.cache import EmployeeCache
from modules.directory.services.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)

SYNC_SUCCESS_MESSAGE = "All changes synced successfully!"

SyncStatus = Literal["empty", "synced", "failed", "busy", "offline"]
BackendFactory = Callable[[], AbstractAsyncContextManager[Optional[BackendClient]]]
RefreshHook = Callable[[BackendClient], Awaitable[Any]]


@dataclass
class SyncResult:
    """Result of a replay."""

    status: SyncStatus
    synced: int = 0
    total: int = 0
    failed_operation: Optional[str] = None
    message: Optional[str] = None
    progress: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in ("empty", "synced")

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "synced": self.synced,
            "total": self.total,
            "failed_operation": self.failed_operation,
            "message": self.message,
            "progress": self.progress,
            "duration_ms": self.duration_ms,
        }


def employee_columns(employee: dict[str, Any], include_id: bool = False) -> dict[str, Any]:
    """Restrict a record to the columns the client may write."""
    row = {key: employee.get(key) for key in WRITABLE_COLUMNS if key in employee}
    if include_id:
        row["id"] = employee["id"]
    return row


class SyncEngine:
    """
    Drains the pending-operation queue.

    Args:
        cache: Local cache holding the queue.
        backend_factory: Opens a BackendClient acting as the remembered user
            (or yields None when nobody is signed in). Used when no client is
            passed to sync_pending_operations().
        employees_table: Remote table name.
        monitor: Optional connectivity monitor told about transport failures.
        refresh: Called with the client after a successful replay.
    """

    def __init__(
        self,
        cache: EmployeeCache,
        backend_factory: Optional[BackendFactory] = None,
        employees_table: str = "employees",
        monitor: Optional[ConnectivityMonitor] = None,
        refresh: Optional[RefreshHook] = None,
    ) -> None:
        self._cache = cache
        self._backend_factory = backend_factory
        self._table = employees_table
        self._monitor = monitor
        self._refresh = refresh
        self._lock = asyncio.Lock()
        self._last_result: Optional[SyncResult] = None

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    async def _replay(self, backend: BackendClient, op: dict[str, Any]) -> None:
        operation = op["operation"]
        employee = op["employee"]

        if operation == "create":
            await backend.insert(self._table, employee_columns(employee, include_id=True))
        elif operation == "update":
            await backend.update(self._table, employee_columns(employee), {"id": employee["id"]})
        elif operation == "delete":
            await backend.delete(self._table, {"id": employee["id"]})
        else:
            raise ValueError(f"Unknown pending operation: {operation}")

    async def sync_pending_operations(
        self,
        backend: Optional[BackendClient] = None,
    ) -> SyncResult:
        """
        Replay every queued operation.

        Args:
            backend: Client to replay with. Defaults to one opened by the
                backend factory.
        """
        if self._lock.locked():
            return SyncResult(status="busy", message="Sync already in progress")

        async with self._lock:
            if backend is not None:
                result = await self._sync_with(backend)
            elif self._backend_factory is not None:
                async with self._backend_factory() as factory_backend:
                    if factory_backend is None:
                        logger.info("Pending operations kept: no active session to sync as")
                        result = SyncResult(
                            status="failed",
                            total=await self._cache.count_pending_operations(),
                            message="Sign in to sync pending changes",
                        )
                    else:
                        result = await self._sync_with(factory_backend)
            else:
                raise RuntimeError("SyncEngine needs a backend or a backend_factory")

        self._last_result = result
        return result

    async def _sync_with(self, backend: BackendClient) -> SyncResult:
        start = time.time()
        operations = await self._cache.get_pending_operations()
        if not operations:
            return SyncResult(status="empty")

        progress = f"Syncing {len(operations)} pending changes..."
        logger.info(progress)
        synced = 0
        for op in operations:
            try:
                await self._replay(backend, op)
            except (BackendError, ValueError) as e:
                if isinstance(e, BackendConnectionError) and self._monitor is not None:
                    await self._monitor.report_failure()
                logger.error(f"Error syncing {op['operation']} operation #{op['id']}: {e}")
                return SyncResult(
                    status="failed",
                    synced=synced,
                    total=len(operations),
                    failed_operation=op["operation"],
                    message=f"Failed to sync {op['operation']} operation",
                    progress=progress,
                    duration_ms=(time.time() - start) * 1000,
                )
            synced += 1

        await self._cache.clear_pending_operations(up_to_id=operations[-1]["id"])
        logger.info(f"Synced {synced} pending operation(s)")

        remaining = await self._cache.count_pending_operations()
        if remaining:
            # the mirror already holds the local effect of the newer operations
            logger.info(f"{remaining} operation(s) queued during sync; mirror refresh deferred")
        elif self._refresh is not None:
            try:
                await self._refresh(backend)
            except BackendError as e:
                logger.warning(f"Refresh after sync failed: {e}")

        return SyncResult(
            status="synced",
            synced=synced,
            total=len(operations),
            message=SYNC_SUCCESS_MESSAGE,
            progress=progress,
            duration_ms=(time.time() - start) * 1000,
        )

"""
Directory Module Entry Point.

Implements IAppModule interface for integration with the application framework.
Handles the employee directory, the org chart and offline sync with the
remote store.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional, TYPE_CHECKING

import httpx
from fastapi import APIRouter

from core.backend import BackendClient, get_session_holder
from core.database import get_session_factory
from core.http_client import create_standalone_http_client
from core.interface import IAppModule
from modules.directory.core.config import DirectorySettings, get_directory_settings
from modules.directory.routers import employees_router, hierarchy_router, sync_router
from modules.directory.services.cache import EmployeeCache
from modules.directory.services.connectivity import ConnectivityMonitor
from modules.directory.services.directory import DirectoryService, set_directory_service

if TYPE_CHECKING:
    from core.app_context import AppContext

logger = logging.getLogger(__name__)


class DirectoryModule(IAppModule):
    """
    Directory Module for the employee directory.

    Features:
        - Employee listing, search, sort and CRUD
        - Org chart built from the manager relation
        - Local cache and pending-operation queue while offline
        - Automatic replay of queued changes on reconnect

    Startup:
        - Builds the cache, connectivity monitor and directory service
        - Starts background connectivity probing
    """

    def __init__(self, settings: Optional[DirectorySettings] = None) -> None:
        self._context: Optional["AppContext"] = None
        self._api_router: Optional[APIRouter] = None
        self._settings = settings or get_directory_settings()
        self._monitor: Optional[ConnectivityMonitor] = None
        self._service: Optional[DirectoryService] = None
        # Store background task references to prevent garbage collection
        self._background_tasks: list[asyncio.Task[Any]] = []

    def get_module_name(self) -> str:
        """Return module identifier."""
        return "directory"

    @property
    def service(self) -> Optional[DirectoryService]:
        return self._service

    # =========================================================================
    # Remote store access outside a request
    # =========================================================================

    def _backend_for(self, client: httpx.AsyncClient, access_token: Optional[str] = None) -> BackendClient:
        return BackendClient(
            client,
            base_url=self._settings.backend_url or None,
            anon_key=self._settings.backend_anon_key.get_secret_value() or None,
            access_token=access_token,
        )

    async def _probe(self) -> bool:
        """Reachability probe for the connectivity monitor."""
        async with create_standalone_http_client(
            timeout=self._settings.connectivity_probe_timeout
        ) as client:
            health = await self._backend_for(client).check_connection()
        return health.get("status") in ("healthy", "warning")

    @asynccontextmanager
    async def _session_backend(self) -> AsyncGenerator[Optional[BackendClient], None]:
        """Client acting as the remembered user, or None when nobody signed in."""
        access_token = get_session_holder().access_token
        if not access_token:
            yield None
            return

        async with create_standalone_http_client() as client:
            yield self._backend_for(client, access_token)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def on_entry(self, context: "AppContext") -> None:
        """
        Initialize the directory module.

        Called by the framework during application startup.

        Args:
            context: Application context from the main framework.
        """
        self._context = context
        logger.info("Directory module initializing...")

        self._monitor = ConnectivityMonitor(
            self._probe,
            check_interval=self._settings.connectivity_check_interval,
            probe_timeout=self._settings.connectivity_probe_timeout,
        )
        self._service = DirectoryService(
            EmployeeCache(get_session_factory()),
            self._monitor,
            backend_factory=self._session_backend,
            employees_table=self._settings.employees_table,
            auto_sync_on_reconnect=self._settings.auto_sync_on_reconnect,
        )
        set_directory_service(self._service)

        # Build API router
        self._api_router = APIRouter(prefix="/directory")
        self._api_router.include_router(employees_router)
        self._api_router.include_router(hierarchy_router)
        self._api_router.include_router(sync_router)

        # Note: the monitor task is started in async_startup()
        # because no event loop is running during on_entry()

        context.log_event("Directory module loaded", "DIRECTORY")
        logger.info("Directory module initialized")

    async def async_startup(self) -> None:
        """
        Start connectivity probing.

        Called by the framework during FastAPI lifespan startup.
        """
        if self._monitor is None or self._service is None:
            logger.error("Directory module async startup before on_entry()")
            return

        self._monitor.on_change(self._service.handle_connectivity_change)
        self._monitor.start()
        logger.info("Directory module async startup completed")

    async def async_shutdown(self) -> None:
        """Stop probing and wait for background sync tasks."""
        if self._monitor is not None:
            await self._monitor.stop()
        if self._service is not None:
            await self._service.close()

        for task in self._background_tasks:
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

    def on_shutdown(self) -> None:
        """Cleanup when module is shutting down."""
        logger.info("Directory module shutting down")
        set_directory_service(None)

    # =========================================================================
    # Events
    # =========================================================================

    def _start_sync(self) -> bool:
        """Replay the pending queue as a background task."""
        if self._service is None:
            return False

        service = self._service

        async def sync_worker() -> None:
            result = await service.sync()
            logger.info(f"Background sync finished: {result.status} ({result.synced}/{result.total})")

        def handle_task_exception(task: asyncio.Task[Any]) -> None:
            """Callback to handle task exceptions without crashing the app."""
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.error(
                    f"Background sync task failed with exception: {exc}",
                    exc_info=exc,
                )

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Cannot start sync: no running event loop")
            return False

        task = loop.create_task(sync_worker(), name="directory_sync")
        task.add_done_callback(handle_task_exception)
        self._background_tasks = [t for t in self._background_tasks if not t.done()]
        self._background_tasks.append(task)
        return True

    def handle_event(self, context: "AppContext", event: dict) -> Optional[dict]:
        """
        Handle events routed to this module.

        This module primarily operates via its API routers.
        """
        event_type = event.get("type", "")

        if event_type == "sync":
            started = self._start_sync()
            return {"status": "sync_started" if started else "sync_unavailable"}

        return {
            "success": True,
            "module": self.get_module_name(),
            "message": f"Event received: {event_type}",
        }

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_api_router(self) -> Optional[APIRouter]:
        """Return the module's API router."""
        return self._api_router

    def get_status(self) -> dict[str, Any]:
        """
        Return current module status for monitoring.

        Exposes:
            - Connectivity state
            - Last sync outcome
        """
        if self._monitor is None or self._service is None:
            return {"status": "initializing", "details": {}}

        monitor_status = self._monitor.status()
        status = "active" if monitor_status.online else "warning"
        details = {
            "Remote Store": "Online" if monitor_status.online else "Offline",
            "Monitor": "Running" if self._monitor.is_running else "Stopped",
            "Syncing": "Yes" if self._service.sync_engine.is_syncing else "No",
        }
        if monitor_status.last_latency_ms is not None:
            details["Latency"] = f"{monitor_status.last_latency_ms}ms"

        last_result = self._service.sync_engine.last_result
        if last_result is not None:
            details["Last Sync"] = last_result.status.title()
            if last_result.status == "failed" and last_result.message:
                details["Last Error"] = last_result.message[:100]

        return {
            "status": status,
            "details": details,
        }


# Module factory function for dynamic loading
def create_module() -> DirectoryModule:
    """Factory function for module instantiation."""
    return DirectoryModule()

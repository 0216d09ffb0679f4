"""
IAppModule - Abstract Base Class for all application modules.
Follows Interface Segregation Principle (ISP) and Open/Closed Principle (OCP).
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from fastapi import APIRouter

    from core.app_context import AppContext


class IAppModule(ABC):
    """
    Abstract interface for pluggable application modules.
    All business modules must implement this interface to be registered.
    """

    @abstractmethod
    def get_module_name(self) -> str:
        """
        Returns the unique identifier for this module.
        Used for routing and registry lookup.

        Returns:
            str: The module's unique name (e.g., 'directory')
        """
        pass

    @abstractmethod
    def on_entry(self, context: "AppContext") -> None:
        """
        Called when the module is first loaded/activated.
        No event loop is running yet; defer async work to async_startup().

        Args:
            context: The application context containing shared services
        """
        pass

    @abstractmethod
    def handle_event(self, context: "AppContext", event: dict) -> Optional[dict]:
        """
        Handles incoming events routed to this module.

        Args:
            context: The application context containing shared services
            event: The event payload dictionary

        Returns:
            Optional response dictionary
        """
        pass

    async def async_startup(self) -> None:
        """
        Called during the FastAPI lifespan startup, after on_entry(),
        when asyncio.get_running_loop() will succeed.

        Override to start background tasks. Default does nothing.
        """
        pass

    async def async_shutdown(self) -> None:
        """
        Called during the FastAPI lifespan shutdown, before on_shutdown().
        Override to cancel background tasks.
        """
        pass

    def on_shutdown(self) -> None:
        """
        Called when the module is being unloaded.
        Override for cleanup logic.
        """
        pass

    def get_api_router(self) -> Optional["APIRouter"]:
        """
        Returns the module's API router, mounted under /api by main.py.

        Returns:
            Optional[APIRouter]: None if the module exposes no HTTP routes.
        """
        return None

    def get_status(self) -> dict[str, Any]:
        """
        Returns the current status of the module for monitoring.

        Returns:
            dict: Status info with structure:
                  {
                      "status": "healthy" | "warning" | "error" | "initializing",
                      "message": "Optional status message",
                      "details": { "key": "value" }
                  }
        """
        return {
            "status": "healthy",
            "details": {}
        }

"""
Status API - Server, module and event log endpoints.

Read-only monitoring for the directory service: whether the server is
running, whether the backend is configured, each module's status card
and the recent event log kept by AppContext.
"""
from typing import Any, Dict, List, TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Query, status

if TYPE_CHECKING:
    from core.app_context import AppContext
    from core.registry import ModuleRegistry


# Set by init_status_api() during app creation
_context: "AppContext" = None  # type: ignore
_registry: "ModuleRegistry" = None  # type: ignore

router = APIRouter(prefix="/api", tags=["status"])


def init_status_api(context: "AppContext", registry: "ModuleRegistry") -> APIRouter:
    """Bind the status router to the running context and registry."""
    global _context, _registry
    _context = context
    _registry = registry
    return router


def _module_card(module) -> Dict[str, Any]:
    return {"name": module.get_module_name(), "status": module.get_status()}


@router.get("/status")
async def get_status() -> Dict[str, Any]:
    """Server state, backend configuration and loaded module names."""
    server_running, server_port = _context.get_server_status()

    return {
        "status": "running" if server_running else "stopped",
        "port": server_port,
        "backend_configured": _context.config.is_backend_configured(),
        "modules_loaded": _registry.get_module_names() if _registry else [],
    }


@router.get("/modules")
async def get_modules() -> Dict[str, List[Dict[str, Any]]]:
    """Status cards for every registered module."""
    if not _registry:
        return {"modules": []}
    return {"modules": [_module_card(m) for m in _registry.get_all_modules()]}


@router.get("/modules/{module_name}")
async def get_module(module_name: str) -> Dict[str, Any]:
    """Status card for one module."""
    module = _registry.get_module(module_name) if _registry else None
    if module is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Module '{module_name}' not found",
        )
    return _module_card(module)


@router.get("/logs")
async def get_logs(limit: int = Query(100, ge=1, le=500)) -> Dict[str, List[str]]:
    """Most recent event log entries, oldest first."""
    logs = _context.get_event_log() if _context else []
    return {"logs": logs[-limit:]}

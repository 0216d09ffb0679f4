"""
Employee Directory - Entry Point.

Headless ASGI application for uvicorn execution.

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000 --reload

Or run directly:
    python main.py
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI

from core.app_context import AppContext
from core.database import close_db_connections, init_database
from core.http_client import create_http_client_context
from core.logging_config import setup_logging
from core.registry import ModuleLoader, ModuleRegistry
from core.server import create_base_app

# Module directory path
MODULES_DIR = "modules"


# -----------------------------------------------------------------------------
# Application Factory
# -----------------------------------------------------------------------------


def create_app_context() -> AppContext:
    """Create and configure the AppContext."""
    return AppContext()


def create_registry(context: AppContext) -> ModuleRegistry:
    """Create and configure the ModuleRegistry with loaded modules."""
    registry = ModuleRegistry()
    registry.set_context(context)

    modules_path = Path(__file__).parent / MODULES_DIR
    loader = ModuleLoader(registry)
    count = loader.load_from_directory(str(modules_path))
    context.log_event(f"Loaded {count} module(s) from {MODULES_DIR}/", "LOADER")

    return registry


def create_fastapi_app(context: AppContext, registry: ModuleRegistry) -> FastAPI:
    """Create the FastAPI application with all routers configured."""
    from api.status_api import init_status_api

    app = create_base_app(context, registry)

    status_router = init_status_api(context, registry)
    app.include_router(status_router)

    # Register module API routers
    for module in registry.get_all_modules():
        module_router = module.get_api_router()
        if module_router is not None:
            app.include_router(module_router, prefix="/api")
            context.log_event(
                f"Registered API router for module: {module.get_module_name()} at /api",
                "LOADER",
            )

    return app


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Opens the shared HTTP client and the cache database, then starts
    module background work (connectivity monitoring, reconnect sync).
    """
    logger = logging.getLogger(__name__)

    logger.info("Starting Employee Directory...")

    timeout = _context.config.get("backend.timeout", 30.0)
    async with create_http_client_context(app, timeout=timeout, max_connections=100):
        logger.info("HTTP client initialized (stored in app.state for DI)")

        try:
            await init_database()
            logger.info("Cache database initialized")
        except Exception as e:
            logger.error(f"Cache database initialization failed: {e}")
            raise

        await _registry.async_startup_all()
        logger.info("Module async startup completed")

        _context.set_server_status(True, _context.config.get("server.port", 8000))
        _context.log_event("Application started successfully", "SUCCESS")

        yield

        logger.info("Shutting down Employee Directory...")

        await _registry.async_shutdown_all()
        _registry.shutdown_all()

        await close_db_connections()
        _context.set_server_status(False, _context.config.get("server.port", 8000))
        logger.info("Cleanup complete")


# -----------------------------------------------------------------------------
# Module-level Application Instance
# -----------------------------------------------------------------------------

# Create core components
_context = create_app_context()

# Setup logging first
setup_logging(_context.config.get("app.log_level", "INFO"))

_registry = create_registry(_context)

# Create FastAPI app with lifespan
_app = create_fastapi_app(_context, _registry)
_app.router.lifespan_context = lifespan

# Export for uvicorn
app = _app


# -----------------------------------------------------------------------------
# Direct Execution
# -----------------------------------------------------------------------------


def main() -> None:
    """Run the application directly with uvicorn."""
    host = _context.config.get("server.host", "127.0.0.1")
    port = _context.config.get("server.port", 8000)
    debug = _context.config.get("app.debug", False)

    uvicorn_config = {
        "host": host,
        "port": port,
        "reload": debug,
        "log_level": "warning",
        "access_log": False,
    }

    # If reload is enabled, exclude logs and the cache database
    if debug:
        uvicorn_config["reload_excludes"] = [
            "logs/*",
            "**/__pycache__/*",
            "**/*.pyc",
            ".venv/*",
            "*.log",
            "*.db",
        ]

    uvicorn.run("main:app", **uvicorn_config)


if __name__ == "__main__":
    main()

"""
FastAPI Application Factory.

Creates and configures the FastAPI application with middleware,
authentication routes and the health endpoint.
"""

from typing import TYPE_CHECKING
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from core.app_context import AppContext

if TYPE_CHECKING:
    from core.registry import ModuleRegistry

_logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
    "http://localhost:5173",
    "http://localhost:8080",
]


def _resolve_allowed_origins(context: AppContext) -> list[str]:
    config = context.config
    base_url = config.get("server.base_url", "")
    is_debug = config.get("app.debug", False)

    allowed_origins: list[str] = []
    if base_url:
        allowed_origins.append(base_url)

    # In debug mode, also allow local dev servers
    if is_debug:
        allowed_origins.extend(o for o in DEV_ORIGINS if o not in allowed_origins)

    if not allowed_origins:
        # Never fall back to ["*"] in production
        _logger.error(
            "CRITICAL: BASE_URL not configured and not in debug mode. "
            "CORS will reject all cross-origin requests. "
            "Please set BASE_URL environment variable."
        )

    return allowed_origins


def create_base_app(
    context: AppContext,
    registry: "ModuleRegistry | None" = None,
    title: str = "Employee Directory API",
    description: str = "Employee directory with offline cache and org chart",
    version: str = "1.0.0",
) -> FastAPI:
    """
    Create and configure the base FastAPI application.

    Args:
        context: Application context for logging and configuration.
        registry: Optional module registry, exposed on app.state.
        title: API title for OpenAPI documentation.
        description: API description for OpenAPI documentation.
        version: API version string.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(title=title, description=description, version=version)

    app.state.context = context
    app.state.registry = registry

    allowed_origins = _resolve_allowed_origins(context)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    if allowed_origins:
        _logger.info(f"CORS configured with {len(allowed_origins)} origin(s): {allowed_origins}")
    else:
        _logger.warning("CORS configured with no allowed origins (all cross-origin requests will be blocked)")

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    _register_core_routes(app)

    return app


def _register_core_routes(app: FastAPI) -> None:
    """Register core API routes (auth, landing, health check)."""
    from core.api.auth import landing_router, router as auth_router

    app.include_router(auth_router)
    app.include_router(landing_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "Employee Directory"}


def set_registry(app: FastAPI, registry: "ModuleRegistry") -> None:
    """Set the module registry on the app."""
    app.state.registry = registry

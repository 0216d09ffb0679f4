"""API module - REST endpoints."""
from api.status_api import router as status_router, init_status_api

__all__ = [
    "status_router",
    "init_status_api",
]

"""
Directory Module API Routers.
"""

from modules.directory.routers.employees import router as employees_router
from modules.directory.routers.hierarchy import router as hierarchy_router
from modules.directory.routers.sync import router as sync_router

__all__ = ["employees_router", "hierarchy_router", "sync_router"]

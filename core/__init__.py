"""Core module - Application kernel components."""
from core.app_context import AppContext, ConfigLoader
from core.interface import IAppModule
from core.logging_config import setup_logging
from core.registry import ModuleRegistry, ModuleLoader
from core.server import create_base_app, set_registry
from core import database

__all__ = [
    "AppContext", "ConfigLoader", "IAppModule",
    "ModuleRegistry", "ModuleLoader",
    "create_base_app", "set_registry",
    "setup_logging", "database",
]

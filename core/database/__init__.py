"""
Core Database Package.

Local cache store management. Modules should use these components instead
of creating their own connections.
"""

from core.database.base import Base, TimestampMixin, CreatedAt, UpdatedAt
from core.database.engine import get_engine, create_cache_engine, close_engine
from core.database.session import (
    get_session_factory,
    get_db_session,
    get_standalone_session,
    close_db_connections,
    init_database,
    DBSession,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "CreatedAt",
    "UpdatedAt",
    # Engine
    "get_engine",
    "create_cache_engine",
    "close_engine",
    # Session
    "get_session_factory",
    "get_db_session",
    "get_standalone_session",
    "close_db_connections",
    "init_database",
    "DBSession",
]

"""
Database Engine Management Module.

Provides a singleton AsyncEngine for the local cache store.
Uses configuration from core.app_context.ConfigLoader (CACHE_DATABASE_URL).

The cache is a single SQLite file accessed through aiosqlite. Foreign keys
are not used; the remote store owns referential integrity.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.app_context import DEFAULT_CACHE_URL, ConfigLoader

_logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None


def get_database_url() -> str:
    """Resolve the cache database URL from configuration."""
    config_loader = ConfigLoader()
    config_loader.load()
    return str(config_loader.get("cache.url", DEFAULT_CACHE_URL) or DEFAULT_CACHE_URL)


def create_cache_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    Args:
        database_url: SQLAlchemy URL, e.g. "sqlite+aiosqlite:///./employee_cache.db".
        echo: Enable SQLAlchemy echo mode for debugging.
    """
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
    )


def get_engine(debug: bool = False) -> AsyncEngine:
    """
    Get or create the async database engine (singleton).

    Args:
        debug: Enable SQLAlchemy echo mode for debugging.

    Returns:
        AsyncEngine: SQLAlchemy async engine instance.
    """
    global _engine

    if _engine is None:
        database_url = get_database_url()
        _logger.info(f"Opening cache database: {database_url}")
        _engine = create_cache_engine(database_url, echo=debug)

    return _engine


async def close_engine() -> None:
    """
    Close the database engine and release all connections.

    Should be called during application shutdown.
    """
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None

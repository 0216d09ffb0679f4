"""
Database Session Management Module.

Provides async database session management using SQLAlchemy 2.0+ async patterns.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.database.engine import close_engine, get_engine


# Global session factory (initialized lazily)
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the async session factory.

    Returns:
        async_sessionmaker[AsyncSession]: Session factory for creating database sessions.
    """
    global _async_session_factory

    if _async_session_factory is None:
        engine = get_engine()
        _async_session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _async_session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database session injection.

    Yields:
        AsyncSession: Database session that auto-closes after request.
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_standalone_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for standalone database sessions (outside FastAPI request context).

    Useful for background tasks such as the reconnect sync.

    Example:
        async with get_standalone_session() as session:
            rows = await session.execute(select(PendingOperation))
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_database() -> None:
    """
    Initialize database schema.

    Creates all cache tables if they don't exist.
    Should be called during application startup.
    """
    from core.database.base import Base
    import modules.directory.models  # noqa: F401 - Import to register models with Base.metadata

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db_connections() -> None:
    """
    Close all database connections.

    Should be called during application shutdown.
    """
    global _async_session_factory

    await close_engine()
    _async_session_factory = None


# Type alias for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db_session)]

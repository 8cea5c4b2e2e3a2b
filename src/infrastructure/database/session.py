"""Async ORM sessions bound to the managed database connection.

Storage code never creates engines. It asks for a session here, which first
calls ConnectionManager.connect() so that a cold start, a stale cached
connection or an idle-closed connection are all handled before the session
is opened. Each session commits on success and rolls back on error.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.infrastructure.database.manager import ConnectionManager


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory for ``engine``.

    Args:
        engine: A connected engine returned by the connection manager.

    Returns:
        async_sessionmaker[AsyncSession]: The session factory.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def get_async_session(
    manager: ConnectionManager,
) -> AsyncGenerator[AsyncSession]:
    """Open a session on the managed connection.

    Args:
        manager: Connection manager providing the engine.

    Yields:
        AsyncSession: Session committed on success, rolled back on error.

    Raises:
        ConfigurationError: If no database URL is configured.
        DatabaseConnectionError: If the database cannot be reached.

    Example:
        async with get_async_session(manager) as session:
            result = await session.execute(select(Board))
    """
    engine = await manager.connect()
    async with get_session_factory(engine)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.debug("Database session rolled back due to error")
            raise

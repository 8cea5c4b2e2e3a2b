"""FastAPI dependencies for the connection manager and database sessions.

The connection manager lives on ``app.state`` and is handed to route handlers
through these dependencies, so handlers never reach for a global.

Example:
    @router.get("/boards")
    async def list_boards(db: DatabaseSession) -> list[BoardOut]:
        result = await db.execute(select(Board))
        return result.scalars().all()
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.manager import ConnectionManager
from src.infrastructure.database.session import get_async_session


def get_connection_manager(request: Request) -> ConnectionManager:
    """Return the connection manager owned by the running application.

    Args:
        request: The current request.

    Returns:
        ConnectionManager: The application's connection manager.
    """
    manager: ConnectionManager = request.app.state.connection_manager
    return manager


ConnectionManagerDep = Annotated[ConnectionManager, Depends(get_connection_manager)]


async def get_db(manager: ConnectionManagerDep) -> AsyncGenerator[AsyncSession]:
    """Provide a database session for FastAPI dependency injection.

    Yields:
        AsyncGenerator[AsyncSession]: Session committed on success or rolled
            back on error.
    """
    async with get_async_session(manager) as session:
        yield session


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]

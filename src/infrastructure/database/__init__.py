"""Database connection lifecycle and access.

Core components:
- **driver**: StorageDriver protocol and the SQLAlchemy/asyncpg implementation
- **retry**: Capped exponential backoff and the retry loop
- **idle**: Idle timer that closes unused connections
- **manager**: ConnectionManager coordinating connect/reuse/retry/idle-close
- **health**: Status reporting and on-demand reconnection
- **session**: Async ORM sessions on the managed connection
- **dependencies**: FastAPI dependency injection helpers
"""

from src.infrastructure.database.dependencies import (
    ConnectionManagerDep,
    DatabaseSession,
    get_connection_manager,
    get_db,
)
from src.infrastructure.database.driver import (
    ConnectionState,
    DriverEvent,
    SQLAlchemyDriver,
    StorageDriver,
)
from src.infrastructure.database.health import (
    DatabaseStatus,
    ReconnectResult,
    check_connection,
    try_reconnect,
)
from src.infrastructure.database.manager import ConnectionManager
from src.infrastructure.database.retry import RetryPolicy, backoff_delay
from src.infrastructure.database.session import get_async_session

__all__ = [
    "ConnectionManager",
    "ConnectionManagerDep",
    "ConnectionState",
    "DatabaseSession",
    "DatabaseStatus",
    "DriverEvent",
    "ReconnectResult",
    "RetryPolicy",
    "SQLAlchemyDriver",
    "StorageDriver",
    "backoff_delay",
    "check_connection",
    "get_async_session",
    "get_connection_manager",
    "get_db",
    "try_reconnect",
]

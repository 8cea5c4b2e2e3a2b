"""Storage driver abstraction and its SQLAlchemy async implementation.

The connection manager never talks to SQLAlchemy directly. It depends on the
StorageDriver protocol, which exposes the driver's live connection state, a
connect/close/ping surface, and a subscription hook through which the driver
reports state changes it observes on its own (for example a server dropping
the connection mid-request).

SQLAlchemyDriver implements the protocol on top of an AsyncEngine using the
asyncpg dialect:
- **connect**: builds the engine from ConnectionOptions and verifies it with
  ``SELECT 1`` so a returned engine is known to reach the server
- **close**: disposes the engine and its pool
- **ping**: runs ``SELECT 1`` on a pooled connection
- **events**: a ``handle_error`` listener on the engine turns driver-level
  disconnects into ERROR events
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.engine import URL, ExceptionContext, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.core.config import ConnectionOptions
from src.core.exceptions import ProbeError
from src.infrastructure.constants import PROBE_STATEMENT, SERVER_SETTINGS


class ConnectionState(StrEnum):
    """Connection states reported by a storage driver."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    ERROR = "error"


class DriverEvent(StrEnum):
    """State changes a driver notifies its subscribers about."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


type StateListener = Callable[[DriverEvent, BaseException | None], None]
type EngineFactory = Callable[..., AsyncEngine]


class StorageDriver(Protocol):
    """What the connection manager needs from a database client library."""

    @property
    def state(self) -> ConnectionState:
        """Live connection state as seen by the driver."""
        ...

    @property
    def host(self) -> str | None:
        """Host of the current or most recent connection."""
        ...

    @property
    def database(self) -> str | None:
        """Database name of the current or most recent connection."""
        ...

    async def connect(self, url: str, options: ConnectionOptions) -> AsyncEngine:
        """Open a session to the server and return its handle."""
        ...

    async def close(self) -> None:
        """Close the current session. Must be safe without an open session."""
        ...

    async def ping(self) -> None:
        """Run a lightweight liveness probe, raising on failure."""
        ...

    def subscribe(self, listener: StateListener) -> None:
        """Register ``listener`` for state events, replacing a prior registration."""
        ...

    def unsubscribe(self, listener: StateListener) -> None:
        """Remove ``listener`` if registered."""
        ...


def safe_url(url: str) -> str:
    """Render a database URL with its password masked, for logging."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable url>"


class SQLAlchemyDriver:
    """StorageDriver backed by a SQLAlchemy AsyncEngine."""

    def __init__(
        self,
        echo: bool = False,
        engine_factory: EngineFactory = create_async_engine,
    ) -> None:
        self._echo = echo
        self._engine_factory = engine_factory
        self._engine: AsyncEngine | None = None
        self._url: URL | None = None
        self._state = ConnectionState.DISCONNECTED
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @property
    def host(self) -> str | None:
        return self._url.host if self._url is not None else None

    @property
    def database(self) -> str | None:
        return self._url.database if self._url is not None else None

    def subscribe(self, listener: StateListener) -> None:
        self.unsubscribe(listener)
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        self._listeners = [
            registered for registered in self._listeners if registered != listener
        ]

    def _emit(
        self, driver_event: DriverEvent, error: BaseException | None = None
    ) -> None:
        for listener in list(self._listeners):
            listener(driver_event, error)

    async def connect(self, url: str, options: ConnectionOptions) -> AsyncEngine:
        """Create an engine for ``url`` and verify it can reach the server.

        Any engine left over from a previous connect is disposed first.

        Args:
            url: SQLAlchemy database URL (postgresql+asyncpg://...).
            options: Pool sizing and timeouts for the new engine.

        Returns:
            AsyncEngine: A verified engine.
        """
        if self._engine is not None:
            await self._dispose(self._engine)
            self._engine = None

        self._state = ConnectionState.CONNECTING
        self._url = make_url(url)
        engine = self._engine_factory(
            url,
            pool_size=options.pool_size,
            max_overflow=options.max_overflow,
            pool_timeout=options.pool_timeout,
            pool_recycle=options.pool_recycle,
            pool_pre_ping=options.pool_pre_ping,
            echo=self._echo,
            connect_args={
                "timeout": options.connect_timeout,
                "command_timeout": options.command_timeout,
                "server_settings": SERVER_SETTINGS,
            },
        )
        event.listen(engine.sync_engine, "handle_error", self._handle_error)

        try:
            async with engine.connect() as conn:
                await conn.execute(text(PROBE_STATEMENT))
        except Exception as e:
            await self._dispose(engine)
            self._state = ConnectionState.ERROR
            self._emit(DriverEvent.ERROR, e)
            raise

        self._engine = engine
        self._state = ConnectionState.CONNECTED
        self._emit(DriverEvent.CONNECTED)
        return engine

    async def close(self) -> None:
        """Dispose the engine and its pooled connections."""
        if self._engine is None:
            self._state = ConnectionState.DISCONNECTED
            return

        engine, self._engine = self._engine, None
        self._state = ConnectionState.DISCONNECTING
        try:
            await self._dispose(engine)
        except Exception as e:
            self._state = ConnectionState.ERROR
            self._emit(DriverEvent.ERROR, e)
            raise

        self._state = ConnectionState.DISCONNECTED
        self._emit(DriverEvent.DISCONNECTED)

    async def ping(self) -> None:
        """Run ``SELECT 1`` against the server."""
        if self._engine is None:
            raise ProbeError("No active database engine to probe")
        async with self._engine.connect() as conn:
            await conn.execute(text(PROBE_STATEMENT))

    async def _dispose(self, engine: AsyncEngine) -> None:
        if event.contains(engine.sync_engine, "handle_error", self._handle_error):
            event.remove(engine.sync_engine, "handle_error", self._handle_error)
        await engine.dispose()

    def _handle_error(self, context: ExceptionContext) -> None:
        """Report server-side disconnects seen while executing statements."""
        if not context.is_disconnect or self._state is not ConnectionState.CONNECTED:
            return
        error = context.original_exception
        logger.warning(
            "Database driver reported a disconnect: {}",
            type(error).__name__,
            host=self.host,
        )
        self._state = ConnectionState.ERROR
        self._emit(DriverEvent.ERROR, error)

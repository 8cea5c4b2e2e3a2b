"""Database connection lifecycle manager.

ConnectionManager owns the single database connection of the process and is
the only component allowed to open or close it. Request handlers call
``connect()`` before touching storage; the manager decides whether to reuse
the current connection, join an attempt that is already running, or start a
new one.

Behaviour summary:
- **Deduplication**: at most one connection attempt runs at a time. Callers
  arriving while it runs await the same task and get the same outcome.
- **Reconciliation**: the cached "connected" flag is only trusted when the
  driver's live state agrees. A stale flag is discarded and the old session
  closed inside the new attempt, so concurrent callers join it.
- **Close ordering**: a connect issued while an idle close or disconnect is
  running waits for it before starting a new attempt.
- **Retry**: transient failures are retried with capped exponential backoff;
  only exhaustion is surfaced, as DatabaseConnectionError.
- **Failure cooldown**: after a failed attempt further calls fail fast for a
  short window instead of hammering a database that is down.
- **Idle close**: outside serverless mode the connection is closed after a
  period without use.

The manager is an ordinary object created by the application factory. It is
not a module-level singleton.
"""

import asyncio
import time
from collections.abc import Callable

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from src.core.config import ConnectionOptions, Settings, get_settings
from src.core.exceptions import ConfigurationError, DatabaseConnectionError
from src.infrastructure.database.driver import (
    ConnectionState,
    DriverEvent,
    StorageDriver,
    safe_url,
)
from src.infrastructure.database.idle import IdleTimer
from src.infrastructure.database.retry import (
    RetryPolicy,
    SleepFunc,
    retry_with_backoff,
)

# Driver failures worth another attempt
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    SQLAlchemyError,
    OSError,
    TimeoutError,
)


class ConnectionManager:
    """Connect, reuse, idle-close and reconnect a single database session.

    Args:
        driver: Storage driver that performs the actual network operations.
        settings: Application settings. Defaults to the cached settings.
        sleep: Awaitable sleep used for backoff delays.
        clock: Monotonic clock used for the failure cooldown.
    """

    def __init__(
        self,
        driver: StorageDriver,
        settings: Settings | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        db_config = self._settings.database_config

        self._driver = driver
        self._serverless = self._settings.is_serverless
        self._retry_policy = RetryPolicy(
            max_retries=db_config.max_retries,
            base_delay=db_config.retry_base_delay,
            max_delay=db_config.retry_max_delay,
            factor=db_config.retry_factor,
        )
        self._cooldown = db_config.failure_cooldown_seconds
        self._sleep = sleep
        self._clock = clock

        self._connection: AsyncEngine | None = None
        self._is_connected = False
        self._state = ConnectionState.DISCONNECTED
        self._pending: asyncio.Task[AsyncEngine] | None = None
        self._closing: asyncio.Task[None] | None = None
        self._last_error: DatabaseConnectionError | None = None
        self._last_failure_at: float | None = None
        self._idle_timer = IdleTimer(db_config.max_idle_seconds, self._close_idle)

        # Registered once for the manager's lifetime
        driver.subscribe(self._on_driver_event)

    @property
    def state(self) -> ConnectionState:
        """Connection state from the manager's point of view."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def serverless(self) -> bool:
        return self._serverless

    @property
    def driver(self) -> StorageDriver:
        return self._driver

    @property
    def idle_timer(self) -> IdleTimer:
        return self._idle_timer

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def last_error(self) -> DatabaseConnectionError | None:
        """The failure of the most recent attempt, cleared on success."""
        return self._last_error

    async def connect(
        self,
        url: str | None = None,
        options: ConnectionOptions | None = None,
        *,
        force: bool = False,
    ) -> AsyncEngine:
        """Return a live connection, establishing one if needed.

        Args:
            url: Database URL. Defaults to the configured URL.
            options: Driver options. Defaults to the profile for the
                current execution mode.
            force: Ignore the failure cooldown.

        Returns:
            AsyncEngine: The connected engine.

        Raises:
            ConfigurationError: If no database URL is available.
            DatabaseConnectionError: If the connection could not be established.
        """
        database_url = url or self._settings.database_config.database_url
        if not database_url:
            raise ConfigurationError(
                "Database URL is not configured",
                context={"setting": "DATABASE_CONFIG__DATABASE_URL"},
            )

        if self._pending is not None:
            logger.debug("Joining in-flight database connection attempt")
            return await asyncio.shield(self._pending)

        while self._closing is not None:
            logger.debug("Waiting for database connection close to finish")
            await asyncio.wait([self._closing])
            if self._pending is not None:
                return await asyncio.shield(self._pending)

        stale_state: ConnectionState | None = None
        if self._is_connected:
            live_state = self._driver.state
            if (
                live_state is ConnectionState.CONNECTED
                and self._connection is not None
            ):
                logger.debug("Using existing database connection")
                self._touch()
                return self._connection
            stale_state = live_state

        self._check_cooldown(force)

        if stale_state is not None:
            self._mark_not_connected(ConnectionState.DISCONNECTING)
        # Callers arriving during the stale close join this same task
        self._pending = asyncio.create_task(
            self._establish(database_url, options, stale_state), name="db-connect"
        )
        return await asyncio.shield(self._pending)

    async def disconnect(self) -> None:
        """Close the connection. Does nothing when already disconnected.

        An attempt still in flight is allowed to finish first.

        Raises:
            DatabaseConnectionError: If the driver fails to close the session.
        """
        if self._pending is not None:
            await asyncio.wait([self._pending])
        if self._closing is not None:
            await asyncio.wait([self._closing])

        self._idle_timer.cancel()

        if not self._is_connected and self._driver.state in (
            ConnectionState.DISCONNECTED,
            ConnectionState.DISCONNECTING,
        ):
            logger.debug("Database already disconnected")
            self._state = ConnectionState.DISCONNECTED
            return

        self._mark_not_connected(ConnectionState.DISCONNECTING)
        try:
            await asyncio.shield(self._start_close())
        except RETRYABLE_ERRORS as e:
            self._settle_after_close(ConnectionState.ERROR)
            logger.error(
                "Error closing database connection: {}",
                type(e).__name__,
                error_type=type(e).__name__,
            )
            raise DatabaseConnectionError(
                "Error closing database connection", cause=e
            ) from e

        self._settle_after_close(ConnectionState.DISCONNECTED)
        logger.info("Database connection closed")

    async def _establish(
        self,
        url: str,
        options: ConnectionOptions | None,
        stale_state: ConnectionState | None = None,
    ) -> AsyncEngine:
        """Body of the in-flight attempt task."""
        try:
            if stale_state is not None:
                await self._discard_stale_session(stale_state)
            return await self._open(url, options)
        finally:
            self._pending = None

    async def _open(
        self, url: str, options: ConnectionOptions | None
    ) -> AsyncEngine:
        """Run the retry loop for one connection attempt."""
        options = options or self._settings.database_config.connection_options(
            self._serverless
        )
        self._state = ConnectionState.CONNECTING
        attempts = 0

        async def attempt() -> AsyncEngine:
            nonlocal attempts
            attempts += 1
            return await self._driver.connect(url, options)

        logger.info(
            "Connecting to database at {}",
            safe_url(url),
            serverless=self._serverless,
            pool_size=options.pool_size,
        )
        try:
            connection = await retry_with_backoff(
                attempt,
                self._retry_policy,
                retry_on=RETRYABLE_ERRORS,
                sleep=self._sleep,
                on_retry=self._log_retry,
            )
        except RETRYABLE_ERRORS as e:
            self._mark_not_connected(ConnectionState.ERROR)
            self._last_failure_at = self._clock()
            self._last_error = DatabaseConnectionError(
                f"Could not connect to database after {attempts} attempts",
                context={"attempts": attempts, "host": self._driver.host},
                cause=e,
            )
            logger.error(
                "Failed to connect to database after {} attempts: {}",
                attempts,
                type(e).__name__,
                attempt=attempts,
                error_type=type(e).__name__,
            )
            raise self._last_error from e
        except Exception:
            self._mark_not_connected(ConnectionState.ERROR)
            raise

        self._connection = connection
        self._is_connected = True
        self._state = ConnectionState.CONNECTED
        self._last_error = None
        self._last_failure_at = None
        logger.info(
            "New database connection established",
            host=self._driver.host,
            db=self._driver.database,
            attempt=attempts,
        )
        self._touch()
        return connection

    def _check_cooldown(self, force: bool) -> None:
        if force or not self._cooldown or self._last_failure_at is None:
            return
        elapsed = self._clock() - self._last_failure_at
        if elapsed >= self._cooldown:
            return
        logger.info(
            "Recent database connection failure, skipping reconnection attempt",
            retry_after_seconds=round(self._cooldown - elapsed, 1),
        )
        raise DatabaseConnectionError(
            "Database connection recently failed, try again later",
            context={"retry_after_seconds": round(self._cooldown - elapsed, 1)},
            cause=self._last_error,
        )

    async def _discard_stale_session(self, live_state: ConnectionState) -> None:
        """Drop a cached connection the driver no longer considers live."""
        logger.warning(
            "Cached database connection is stale (driver state: {}), reconnecting",
            live_state.value,
            state=live_state.value,
        )
        try:
            await self._driver.close()
        except RETRYABLE_ERRORS as e:
            logger.warning(
                "Error closing stale database session: {}",
                type(e).__name__,
                error_type=type(e).__name__,
            )

    async def _close_idle(self) -> None:
        """Idle timer callback."""
        if not self._is_connected or self._pending is not None:
            return

        logger.info(
            "Closing idle database connection",
            idle_seconds=self._idle_timer.timeout,
        )
        self._mark_not_connected(ConnectionState.DISCONNECTING)
        try:
            await asyncio.shield(self._start_close())
        except RETRYABLE_ERRORS as e:
            self._settle_after_close(ConnectionState.ERROR)
            logger.error(
                "Error closing idle database connection: {}",
                type(e).__name__,
                error_type=type(e).__name__,
            )
            return
        self._settle_after_close(ConnectionState.DISCONNECTED)
        logger.info("Database connection closed due to inactivity")

    def _start_close(self) -> asyncio.Task[None]:
        """Close the driver session in a task that connect() waits for."""
        task = asyncio.create_task(self._driver.close(), name="db-close")
        self._closing = task
        task.add_done_callback(self._close_finished)
        return task

    def _close_finished(self, task: asyncio.Task[None]) -> None:
        if self._closing is task:
            self._closing = None

    def _settle_after_close(self, state: ConnectionState) -> None:
        # A newer attempt owns the state once it has started
        if self._pending is None and not self._is_connected:
            self._state = state

    def _on_driver_event(
        self, driver_event: DriverEvent, error: BaseException | None
    ) -> None:
        """Mirror state changes the driver reports on its own."""
        if driver_event is DriverEvent.CONNECTED:
            logger.debug("Driver reported connected")
            return

        # Closes and failed attempts initiated here are already accounted for
        if not self._is_connected:
            return

        if driver_event is DriverEvent.DISCONNECTED:
            self._mark_not_connected(ConnectionState.DISCONNECTED)
            logger.warning("Database disconnected")
        else:
            self._mark_not_connected(ConnectionState.ERROR)
            logger.error(
                "Database connection error: {}",
                type(error).__name__ if error else "unknown",
            )

    def _mark_not_connected(self, state: ConnectionState) -> None:
        self._is_connected = False
        self._connection = None
        self._idle_timer.cancel()
        self._state = state

    def _touch(self) -> None:
        """Record a use of the connection."""
        if not self._serverless:
            self._idle_timer.arm()

    @staticmethod
    def _log_retry(attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(
            "Database connection attempt {} failed ({}), retrying in {:.1f}s",
            attempt + 1,
            type(error).__name__,
            delay,
            attempt=attempt + 1,
            delay_seconds=delay,
        )

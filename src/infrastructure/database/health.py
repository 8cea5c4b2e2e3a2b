"""Database health reporting and on-demand reconnection.

check_connection() reads the driver's live state, maps it to a status record
and, only when the driver reports a connected session, runs a liveness probe.
A failed probe is reported in the record but does not change any state; the
next connect() reconciles the manager with the driver.

try_reconnect() is idempotent: it does nothing when already connected and
otherwise asks the manager for a connection, bypassing the failure cooldown.
"""

from datetime import UTC, datetime

from loguru import logger
from pydantic import BaseModel, Field

from src.core.exceptions import DatabaseConnectionError, ProbeError
from src.infrastructure.database.driver import ConnectionState
from src.infrastructure.database.manager import RETRYABLE_ERRORS, ConnectionManager

UNKNOWN_STATE = ("unknown", "Database connection state is unknown")

STATE_DESCRIPTIONS: dict[ConnectionState, tuple[str, str]] = {
    ConnectionState.DISCONNECTED: ("disconnected", "Database is disconnected"),
    ConnectionState.CONNECTED: ("connected", "Database is connected"),
    ConnectionState.CONNECTING: ("connecting", "Database is connecting"),
    ConnectionState.DISCONNECTING: ("disconnecting", "Database is disconnecting"),
}


class DatabaseStatus(BaseModel):
    """Point-in-time view of the database connection."""

    connected: bool = Field(..., description="Whether the driver reports a session")
    state: str = Field(
        ...,
        description="Driver state",
        examples=["disconnected", "connected", "connecting", "disconnecting"],
    )
    message: str = Field(..., description="Human-readable state description")
    ping_ok: bool | None = Field(
        default=None,
        description="Liveness probe result, only present when connected",
    )
    error: str | None = Field(default=None, description="Probe failure summary")
    host: str | None = Field(default=None, description="Database host")
    db: str | None = Field(default=None, description="Database name")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ReconnectResult(BaseModel):
    """Outcome of a reconnection request."""

    success: bool
    message: str


async def check_connection(manager: ConnectionManager) -> DatabaseStatus:
    """Describe the driver's connection state, probing it when connected.

    Args:
        manager: The connection manager whose driver is inspected.

    Returns:
        DatabaseStatus: The status record.
    """
    driver = manager.driver
    state = driver.state
    label, message = STATE_DESCRIPTIONS.get(state, UNKNOWN_STATE)

    status = DatabaseStatus(
        connected=state is ConnectionState.CONNECTED,
        state=label,
        message=message,
        host=driver.host,
        db=driver.database,
    )
    if not status.connected:
        return status

    try:
        await driver.ping()
    except (ProbeError, *RETRYABLE_ERRORS) as e:
        probe_error = (
            e
            if isinstance(e, ProbeError)
            else ProbeError(f"Liveness probe failed: {type(e).__name__}", cause=e)
        )
        logger.warning(
            "Database liveness probe failed: {}",
            probe_error.message,
            host=driver.host,
        )
        status.ping_ok = False
        status.error = probe_error.message
    else:
        status.ping_ok = True
    return status


async def try_reconnect(manager: ConnectionManager) -> ReconnectResult:
    """Reconnect to the database unless already connected.

    Args:
        manager: The connection manager to reconnect.

    Returns:
        ReconnectResult: Whether a live connection is available afterwards.
    """
    if manager.is_connected and manager.driver.state is ConnectionState.CONNECTED:
        return ReconnectResult(success=True, message="Database already connected")

    logger.info("Attempting to reconnect to database")
    try:
        await manager.connect(force=True)
    except DatabaseConnectionError as e:
        logger.error("Failed to reconnect to database: {}", e.message)
        return ReconnectResult(success=False, message=e.message)
    return ReconnectResult(
        success=True, message="Successfully reconnected to database"
    )

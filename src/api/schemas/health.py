"""Response schemas for the health and reconnect endpoints."""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.infrastructure.database.health import DatabaseStatus


def _now() -> datetime:
    return datetime.now(UTC)


class HealthStatusResponse(BaseModel):
    """Body of the versioned health status endpoint."""

    status: Literal["UP", "DEGRADED", "DOWN"] = Field(
        ...,
        description="UP when the database is connected, DEGRADED otherwise",
    )
    timestamp: datetime = Field(default_factory=_now)
    db: DatabaseStatus | None = None
    error: str | None = None


class ReconnectResponse(BaseModel):
    """Body of the reconnect endpoint."""

    status: Literal["SUCCESS", "FAILED", "ERROR"]
    message: str | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=_now)


class ServerHealthResponse(BaseModel):
    """Body of the unversioned ``/health`` liveness endpoint."""

    server: Literal["OK"] = "OK"
    message: str = "Server is running"
    timestamp: datetime = Field(default_factory=_now)
    database: Literal["connected", "reconnected", "disconnected", "error"] | None = (
        None
    )
    db_error: str | None = Field(default=None, serialization_alias="dbError")

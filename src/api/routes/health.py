"""Database health endpoints mounted under the versioned API prefix.

- ``GET /health/status``: driver state plus liveness probe
- ``POST /health/reconnect-db``: reconnect on demand, ignoring the failure
  cooldown
"""

from fastapi import APIRouter, status
from loguru import logger

from src.api.constants import HEALTH_ROUTER_PREFIX
from src.api.schemas.health import HealthStatusResponse, ReconnectResponse
from src.api.utils.responses import ORJSONResponse
from src.infrastructure.database.dependencies import ConnectionManagerDep
from src.infrastructure.database.health import check_connection, try_reconnect

router = APIRouter(prefix=HEALTH_ROUTER_PREFIX, tags=["health"])


def _respond(
    body: HealthStatusResponse | ReconnectResponse, status_code: int
) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content=body)


@router.get("/status", response_model=HealthStatusResponse)
async def health_status(manager: ConnectionManagerDep) -> ORJSONResponse:
    """Report the database state. DEGRADED when it is not connected."""
    try:
        db_status = await check_connection(manager)
    except Exception as e:
        logger.opt(exception=e).error("Database health check failed")
        return _respond(
            HealthStatusResponse(status="DOWN", error=str(e)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body = HealthStatusResponse(
        status="UP" if db_status.connected else "DEGRADED", db=db_status
    )
    return _respond(body, status.HTTP_200_OK)


@router.post("/reconnect-db", response_model=ReconnectResponse)
async def reconnect_database(manager: ConnectionManagerDep) -> ORJSONResponse:
    """Reconnect to the database if the connection was lost."""
    try:
        result = await try_reconnect(manager)
    except Exception as e:
        logger.opt(exception=e).error("Database reconnection request failed")
        return _respond(
            ReconnectResponse(status="ERROR", error=str(e)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if result.success:
        return _respond(
            ReconnectResponse(status="SUCCESS", message=result.message),
            status.HTTP_200_OK,
        )
    return _respond(
        ReconnectResponse(status="FAILED", message=result.message),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

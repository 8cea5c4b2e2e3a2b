"""Middleware that makes sure the database is reachable before routing.

Each request outside the health endpoints first asks the connection manager
for a connection. When that fails the request is answered with 503 right
away instead of failing halfway through a handler. Health endpoints are
exempt so they keep reporting while the database is down.
"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import HEALTH_PATH, HEALTH_ROUTER_PREFIX
from src.api.middleware.error_handler import database_unavailable_response
from src.core.exceptions import KanbanError
from src.infrastructure.database.manager import ConnectionManager


class DatabaseAvailabilityMiddleware(BaseHTTPMiddleware):
    """Ensure a database connection before dispatching non-health requests.

    Args:
        app: The ASGI application
        api_prefix: Prefix of the versioned API, whose health router is exempt
    """

    def __init__(self, app: ASGIApp, api_prefix: str = "/api/v1") -> None:
        super().__init__(app)
        self.exempt_paths = {HEALTH_PATH}
        self.exempt_prefix = f"{api_prefix.rstrip('/')}{HEALTH_ROUTER_PREFIX}"

    def is_exempt(self, path: str) -> bool:
        """Whether ``path`` skips the database check."""
        return path in self.exempt_paths or path == self.exempt_prefix or (
            path.startswith(f"{self.exempt_prefix}/")
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if self.is_exempt(request.url.path):
            return await call_next(request)

        manager: ConnectionManager = request.app.state.connection_manager
        try:
            await manager.connect()
        except KanbanError as e:
            logger.error(
                "Database connection is not available: {}",
                e.message,
                error_code=e.error_code,
                path=request.url.path,
            )
            return database_unavailable_response()

        return await call_next(request)

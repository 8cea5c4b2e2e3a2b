"""FastAPI application factory and lifecycle management.

create_app() wires the application together:
- Logging setup
- The ConnectionManager, stored on ``app.state`` for dependency injection
- Exception handlers and the database availability middleware
- Liveness, info and versioned health routes

Outside serverless mode the database is connected at startup and a failure
aborts startup. In serverless mode connections are made on demand by the
middleware, since an invocation may never touch the database.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import FastAPI, Query
from loguru import logger

from src.api.middleware.database_guard import DatabaseAvailabilityMiddleware
from src.api.middleware.error_handler import register_exception_handlers
from src.api.routes.health import router as health_router
from src.api.schemas.health import ServerHealthResponse
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.exceptions import KanbanError
from src.core.logging import setup_logging
from src.infrastructure.database.dependencies import ConnectionManagerDep
from src.infrastructure.database.driver import ConnectionState, SQLAlchemyDriver
from src.infrastructure.database.health import try_reconnect
from src.infrastructure.database.manager import ConnectionManager


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.

    Raises:
        RuntimeError: If the database connection fails during startup of a
            long-running process.
    """
    manager: ConnectionManager = app_instance.state.connection_manager

    if manager.serverless:
        logger.info("Serverless mode, database will be connected on demand")
    else:
        try:
            await manager.connect()
        except KanbanError as e:
            logger.error("Database connection failed during startup: {}", e.message)
            msg = f"Database connection failed: {e.message}"
            raise RuntimeError(msg) from e
        logger.info("Database connection successful")

    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown initiated")
    try:
        await manager.disconnect()
    except KanbanError as e:
        logger.error("Error closing database during shutdown: {}", e.message)
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    manager: ConnectionManager | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. Defaults to get_settings().
        manager: Optional connection manager. Defaults to one backed by
            SQLAlchemyDriver.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    if manager is None:
        manager = ConnectionManager(
            SQLAlchemyDriver(echo=settings.database_config.echo), settings
        )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.connection_manager = manager

    register_exception_handlers(application)
    application.add_middleware(
        DatabaseAvailabilityMiddleware, api_prefix=settings.api_prefix
    )

    @application.get("/")
    async def root() -> dict[str, str]:
        """Service banner."""
        return {"message": f"{settings.app_name} is running"}

    @application.get(
        "/health",
        response_model=ServerHealthResponse,
        response_model_exclude_none=True,
    )
    async def health(
        db_manager: ConnectionManagerDep,
        check_db: Annotated[bool, Query(alias="checkDb")] = False,
    ) -> ServerHealthResponse:
        """Server liveness, optionally checking (and restoring) the database.

        Used by platform health checks and the keep-warm pinger. With
        ``?checkDb=true`` a lost connection is re-established on the spot.
        """
        response = ServerHealthResponse()
        if not check_db:
            return response

        if (
            db_manager.is_connected
            and db_manager.driver.state is ConnectionState.CONNECTED
        ):
            response.database = "connected"
            return response

        try:
            result = await try_reconnect(db_manager)
        except KanbanError as e:
            logger.warning("Database check failed: {}", e.message)
            response.database = "error"
            response.db_error = e.message
            return response

        response.database = "reconnected" if result.success else "disconnected"
        return response

    @application.get("/info")
    async def info() -> dict[str, Any]:
        """Application information.

        Returns:
            dict[str, Any]: Name, version, environment and execution mode.
        """
        return {
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "debug": settings.debug,
            "serverless": settings.is_serverless,
        }

    application.include_router(health_router, prefix=settings.api_prefix)

    return application


app = create_app()

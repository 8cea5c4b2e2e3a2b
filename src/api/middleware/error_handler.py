"""Global exception handlers for the FastAPI application.

Every error leaves the API as ``{"errors": [{"param": ..., "msg": ...}]}``.
Database failures become 503 so clients and load balancers can tell an
unavailable backend apart from a bug. Internal exception details are logged
and never returned.
"""

from collections.abc import Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from src.api.constants import (
    DATABASE_ERROR_PARAM,
    DATABASE_UNAVAILABLE_MESSAGE,
    SERVER_ERROR_MESSAGE,
    SERVER_ERROR_PARAM,
)
from src.api.schemas.errors import ErrorItem, ErrorResponse
from src.api.utils.responses import ORJSONResponse
from src.core.exceptions import (
    DatabaseConnectionError,
    ErrorCode,
    KanbanError,
    ProbeError,
    Severity,
)

# Location prefixes FastAPI puts in front of the field name
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def database_unavailable_response() -> ORJSONResponse:
    """Build the 503 response returned whenever the database is unreachable."""
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse.single(
            DATABASE_ERROR_PARAM, DATABASE_UNAVAILABLE_MESSAGE
        ).model_dump(),
    )


def _log_for(exc: KanbanError) -> Callable[..., None]:
    """Pick the log level from the error's severity."""
    if exc.severity is Severity.CRITICAL:
        return logger.critical
    return logger.error if exc.should_alert else logger.warning


def _server_error_body() -> dict[str, object]:
    return ErrorResponse.single(SERVER_ERROR_PARAM, SERVER_ERROR_MESSAGE).model_dump()


async def database_error_handler(request: Request, exc: Exception) -> Response:
    """Handle database connectivity failures.

    Covers DatabaseConnectionError, ProbeError and raw SQLAlchemyError raised
    from route handlers.

    Args:
        request: The request that caused the exception
        exc: The database exception

    Returns:
        Response: 503 with a ``database`` error entry
    """
    if isinstance(exc, KanbanError):
        error_code = exc.error_code
        message = exc.message
        log = _log_for(exc)
    else:
        error_code = ErrorCode.DATABASE_UNAVAILABLE.value
        message = "Database operation failed"
        log = logger.error

    log(
        "Database error while handling {} {}: {}",
        request.method,
        request.url.path,
        message,
        error_code=error_code,
        error_type=type(exc).__name__,
    )
    return database_unavailable_response()


async def kanban_error_handler(request: Request, exc: Exception) -> Response:
    """Handle application errors that are not database failures.

    Raises:
        TypeError: If exc is not a KanbanError instance
    """
    if not isinstance(exc, KanbanError):
        raise TypeError(f"Expected KanbanError, got {type(exc).__name__}")

    _log_for(exc)(
        "Handling {}: {}",
        type(exc).__name__,
        exc.message,
        error_code=exc.error_code,
        alert=exc.should_alert,
        request_method=request.method,
        request_path=request.url.path,
    )
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_server_error_body(),
    )


def _field_name(location: tuple[int | str, ...]) -> str:
    parts = [str(part) for part in location]
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts) or "root"


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle request validation errors with one entry per invalid field.

    Args:
        request: The request that failed validation
        exc: The RequestValidationError

    Returns:
        Response: 400 with the field-level errors

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    errors = [
        ErrorItem(
            param=_field_name(tuple(error.get("loc", ()))),
            msg=error.get("msg", "Invalid value"),
        )
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        error_code=ErrorCode.VALIDATION_ERROR.value,
        path=request.url.path,
        method=request.method,
        fields=[error.param for error in errors],
    )
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(errors=errors).model_dump(),
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException, keeping its status code.

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    logger.warning(
        "HTTP exception",
        status=exc.status_code,
        method=request.method,
        path=request.url.path,
        detail=exc.detail,
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.single(SERVER_ERROR_PARAM, str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle anything no other handler claimed."""
    logger.opt(exception=exc).error(
        "Unhandled exception: {}",
        type(exc).__name__,
        error_code=ErrorCode.INTERNAL_ERROR.value,
        request_method=request.method,
        request_path=request.url.path,
    )
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_server_error_body(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(DatabaseConnectionError, database_error_handler)
    app.add_exception_handler(ProbeError, database_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(KanbanError, kanban_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Exception handlers registered")

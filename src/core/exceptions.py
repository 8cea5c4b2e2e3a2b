"""Exception hierarchy for the Kanban API backend.

Every error raised by the application inherits from KanbanError, which carries
a machine-readable error code, a severity used for logging decisions, optional
structured context, and the underlying cause.

The connection layer distinguishes three failure families:
- **ConfigurationError**: the service is misconfigured (e.g. no database URL).
  Fatal and never retried.
- **DatabaseConnectionError**: the database could not be reached after the
  retry budget was spent. Surfaced to HTTP clients as 503.
- **ProbeError**: a liveness probe failed while the driver still reports a
  connected session. Reported by health checks, never changes state.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes returned by the application."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Request data failed validation."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Required configuration is missing or invalid."""

    DATABASE_UNAVAILABLE = "DATABASE_UNAVAILABLE"
    """The database could not be reached."""

    PROBE_FAILED = "PROBE_FAILED"
    """A database liveness probe failed."""


class Severity(Enum):
    """Severity levels used to pick log levels and alerting."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class KanbanError(Exception):
    """Base exception class for all application errors.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    retryable: bool = False

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def should_alert(self) -> bool:
        """Whether the error warrants an alert (HIGH or CRITICAL severity)."""
        return self.severity in (Severity.HIGH, Severity.CRITICAL)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ConfigurationError(KanbanError):
    """Raised when required configuration is missing or unusable.

    Configuration errors are never retried: repeating the operation cannot
    succeed until the deployment is fixed.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.CRITICAL, context, cause)


class DatabaseConnectionError(KanbanError):
    """Raised when a database connection cannot be established or closed.

    The ``cause`` holds the last driver exception observed before giving up.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.DATABASE_UNAVAILABLE,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.HIGH, context, cause)


class ProbeError(KanbanError):
    """Raised when a liveness probe fails on a session reported as connected."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.PROBE_FAILED,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)

"""Custom application exceptions.

Every exception carries a stable, language-independent ``code``; the HTTP
adapter maps it to a status code and a localized message.
"""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    code = "INTERNAL"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class InvalidRequestException(AppException):
    """Malformed input or impossible request combination."""

    code = "INVALID_REQUEST"

    def __init__(self, message: str = "Invalid request", details: dict[str, Any] | None = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, details=details)


class InvalidDateTimeException(InvalidRequestException):
    """Local date or time could not be parsed."""

    def __init__(self, message: str = "Invalid date or time"):
        """Initialize with 400 status code."""
        super().__init__(message)


class NoSchedulingAccessException(AppException):
    """Professional holds no active scheduling access grant."""

    code = "NO_SCHEDULING_ACCESS"

    def __init__(self, message: str = "No active scheduling access"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, details={"has_access": False})


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictException(AppException):
    """Requested slot(s) collide with existing appointments."""

    code = "CONFLICT"

    def __init__(
        self,
        message: str = "Conflict",
        conflicts: list[dict[str, str]] | None = None,
    ):
        """Initialize with 409 status code and the list of colliding slots."""
        self.conflicts = conflicts or []
        super().__init__(message, status_code=409, details={"conflicts": self.conflicts})


class IllegalTransitionException(AppException):
    """Appointment status machine violated."""

    code = "ILLEGAL_TRANSITION"

    def __init__(self, message: str = "Illegal status transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class TransientException(AppException):
    """Storage kept failing with retryable errors."""

    code = "TRANSIENT"

    def __init__(self, message: str = "Temporary storage failure"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class InternalException(AppException):
    """Invariant violation; surfaced opaque."""

    code = "INTERNAL"

    def __init__(self, message: str = "Internal error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


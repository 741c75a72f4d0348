"""Database exceptions.

Typed wrappers around driver failures so the API can answer with a stable
error code, an HTTP status and, for transient failures, a Retry-After hint.
"""

from fastapi import status
from enum import Enum, auto
from typing import Optional, Dict, Any

from app.core.exceptions import ServiceException


class DatabaseErrorCode(Enum):
    """Classification of database failures."""

    CONNECTION_REFUSED = auto()
    CONNECTION_LOST = auto()
    CONNECTION_TIMEOUT = auto()
    INSUFFICIENT_RESOURCES = auto()
    INTEGRITY_ERROR = auto()
    UNKNOWN_ERROR = auto()


class DatabaseException(ServiceException):
    """Base exception for database-related errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE,
        headers: Optional[Dict[str, Any]] = None,
        error_code: DatabaseErrorCode = DatabaseErrorCode.UNKNOWN_ERROR,
        retry_after: Optional[int] = None,
        error_details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.error_details = error_details or {}

        if status_code == status.HTTP_503_SERVICE_UNAVAILABLE and retry_after:
            headers = headers or {}
            headers['Retry-After'] = str(retry_after)

        super().__init__(
            detail={
                "detail": detail,
                "error_code": error_code.name,
                "error_details": self.error_details
            },
            status_code=status_code,
            headers=headers
        )


class ConnectionRefusedError(DatabaseException):
    """The database server refused the connection."""

    def __init__(
        self,
        detail: str = "Database connection refused",
        retry_after: Optional[int] = 30,
        error_details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code=DatabaseErrorCode.CONNECTION_REFUSED,
            retry_after=retry_after,
            error_details=error_details
        )


class ConnectionLostError(DatabaseException):
    """An established connection dropped mid-operation."""

    def __init__(
        self,
        detail: str = "Database connection lost",
        retry_after: Optional[int] = 10,
        error_details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code=DatabaseErrorCode.CONNECTION_LOST,
            retry_after=retry_after,
            error_details=error_details
        )


class ConnectionTimeoutError(DatabaseException):
    """Connecting to the database timed out."""

    def __init__(
        self,
        detail: str = "Database connection timed out",
        retry_after: Optional[int] = 20,
        error_details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code=DatabaseErrorCode.CONNECTION_TIMEOUT,
            retry_after=retry_after,
            error_details=error_details
        )


class InsufficientResourcesError(DatabaseException):
    """The server is out of connections, memory or disk."""

    def __init__(
        self,
        detail: str = "Database server has insufficient resources",
        retry_after: Optional[int] = 60,
        error_details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code=DatabaseErrorCode.INSUFFICIENT_RESOURCES,
            retry_after=retry_after,
            error_details=error_details
        )


class DatabaseIntegrityError(DatabaseException):
    """A constraint other than the idempotency key was violated."""

    def __init__(
        self,
        detail: str = "Database integrity constraint violated",
        error_details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_409_CONFLICT,
            error_code=DatabaseErrorCode.INTEGRITY_ERROR,
            error_details=error_details
        )

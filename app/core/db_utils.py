"""Database utilities for error classification, health checks and upserts."""

import time
from typing import Dict, Any, Type, Tuple

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError, OperationalError, IntegrityError
from sqlalchemy.sql import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db_exceptions import (
    ConnectionRefusedError,
    ConnectionLostError,
    ConnectionTimeoutError,
    InsufficientResourcesError,
    DatabaseIntegrityError,
    DatabaseException,
)
from app.log.logging import logger

# Exceptions get_db retries before giving up
retry_exceptions = [
    ConnectionRefusedError,
    ConnectionLostError,
    ConnectionTimeoutError,
    InsufficientResourcesError,
    OperationalError
]

# PostgreSQL SQLSTATE codes mapped to our error types
PG_ERROR_CODE_MAP = {
    '08001': ConnectionRefusedError,
    '08006': ConnectionLostError,
    '08P01': ConnectionLostError,
    '53000': InsufficientResourcesError,
    '53100': InsufficientResourcesError,
    '53200': InsufficientResourcesError,
    '53300': InsufficientResourcesError,
    '23000': DatabaseIntegrityError,
    '23502': DatabaseIntegrityError,
    '23505': DatabaseIntegrityError,
    '23514': DatabaseIntegrityError,
}


def classify_exception(
    exc: Exception
) -> Tuple[Type[DatabaseException], Dict[str, Any]]:
    """Classify a database exception to a more specific error type.

    Args:
        exc: The exception to classify

    Returns:
        Tuple containing the exception class and error details
    """
    error_details = {
        "original_error": str(exc),
        "error_type": type(exc).__name__
    }

    if isinstance(exc, SQLAlchemyError):
        pg_code = getattr(getattr(exc, 'orig', None), 'sqlstate', None) or getattr(exc, 'pgcode', None)
        if pg_code:
            error_details["pg_code"] = pg_code
            return PG_ERROR_CODE_MAP.get(pg_code, DatabaseException), error_details

        if isinstance(exc, IntegrityError):
            return DatabaseIntegrityError, error_details

    error_str = str(exc).lower()
    if "connection refused" in error_str:
        return ConnectionRefusedError, error_details
    elif "timeout" in error_str:
        return ConnectionTimeoutError, error_details
    elif "lost connection" in error_str or "broken pipe" in error_str:
        return ConnectionLostError, error_details
    elif "connection" in error_str and ("reset" in error_str or "closed" in error_str):
        return ConnectionLostError, error_details
    elif "too many connections" in error_str or "out of memory" in error_str:
        return InsufficientResourcesError, error_details

    return DatabaseException, error_details


def dialect_insert(session: AsyncSession, model):
    """
    Return an INSERT construct that supports ``on_conflict_do_nothing``.

    PostgreSQL in production, SQLite in tests and local development.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts are not supported for dialect '{dialect_name}'")


async def healthcheck_database(db_session) -> Dict[str, Any]:
    """Perform a health check on the database.

    Args:
        db_session: SQLAlchemy async session

    Returns:
        Dictionary with health check results
    """
    start_time = time.time()
    try:
        result = await db_session.execute(text("SELECT 1"))
        row = result.scalar()

        response_time = time.time() - start_time

        return {
            "status": "healthy" if row == 1 else "degraded",
            "response_time_ms": round(response_time * 1000, 2),
            "message": "Database connection successful"
        }
    except Exception as exc:
        exception_class, error_details = classify_exception(exc)

        elapsed_time = time.time() - start_time

        logger.error(
            "Database health check failed",
            event_type="db_healthcheck_failed",
            error_type=exception_class.__name__,
            response_time_ms=round(elapsed_time * 1000, 2),
            error_details=error_details
        )

        return {
            "status": "unhealthy",
            "response_time_ms": round(elapsed_time * 1000, 2),
            "error": str(exc),
            "error_type": exception_class.__name__,
            "error_details": error_details
        }

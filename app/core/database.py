import os
import asyncio
import time
import random
from typing import AsyncGenerator, Optional, Dict, Any

from app.core.config import settings
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from app.log.logging import logger
from app.core.db_utils import (
    retry_exceptions,
    classify_exception,
    healthcheck_database,
)

database_url = settings.test_database_url if os.getenv(
    "PYTEST_RUNNING") == "true" else settings.database_url

# Connection pool settings
pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
pool_timeout = int(os.getenv("DB_POOL_TIMEOUT", "30"))
pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "1800"))  # 30 minutes


def engine_options(url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the given URL; SQLite has no sized pool."""
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "pool_pre_ping": True,
    }


logger.info(
    "Database initialization",
    event_type="database_init",
    dialect=database_url.split(":", 1)[0],
    test_mode=os.getenv("PYTEST_RUNNING") == "true",
    pool_size=pool_size,
    max_overflow=max_overflow
)

engine = create_async_engine(database_url, **engine_options(database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine, expire_on_commit=False, autoflush=False
)

# Connection status, used by the health checks
_last_connection_error: Optional[float] = None
_connection_error_count: int = 0
_in_degraded_mode: bool = False
MAX_ERROR_COUNT_BEFORE_DEGRADATION = 3
ERROR_RESET_PERIOD = 300  # 5 minutes


def _handle_db_error(e: Exception, attempts: int):
    """Log a final session failure and enter degraded mode if warranted."""
    global _in_degraded_mode, _last_connection_error

    _last_connection_error = time.time()

    if (not _in_degraded_mode and
            _connection_error_count >= MAX_ERROR_COUNT_BEFORE_DEGRADATION):
        _in_degraded_mode = True
        logger.warning(
            "Entering database degraded mode after multiple connection failures",
            event_type="db_degraded_mode_enter",
            error_count=_connection_error_count
        )

    exception_class, error_details = classify_exception(e)

    logger.error(f"Database operation failed after {attempts} attempts: get_db",
        event_type="db_session_error",
        operation="get_db",
        attempts=attempts,
        in_degraded_mode=_in_degraded_mode,
        error_count=_connection_error_count,
        **error_details
    )


def _reset_error_tracking():
    global _last_connection_error, _connection_error_count, _in_degraded_mode
    if _last_connection_error is None:
        return
    if time.time() - _last_connection_error > ERROR_RESET_PERIOD:
        _connection_error_count = 0
        _last_connection_error = None
        if _in_degraded_mode:
            _in_degraded_mode = False
            logger.info(
                "Exiting database degraded mode after successful connection",
                event_type="db_degraded_mode_exit"
            )


async def _connect_with_backoff(session) -> None:
    """
    Check out a connection for the session, retrying transient failures.

    Raises:
        DatabaseException: The classified failure once retries are exhausted
    """
    global _last_connection_error, _connection_error_count
    max_retries = 3
    initial_delay = 0.5
    max_delay = 5.0
    backoff_factor = 2.0

    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            await session.connection()
            _reset_error_tracking()
            return
        except SQLAlchemyError as e:
            _last_connection_error = time.time()
            _connection_error_count += 1

            exception_class, error_details = classify_exception(e)
            should_retry = any(
                isinstance(e, retry_exc) or exception_class == retry_exc
                for retry_exc in retry_exceptions
            )

            if not should_retry or attempt >= max_retries:
                _handle_db_error(e, attempt + 1)
                raise exception_class(
                    detail=f"Database unavailable after {attempt + 1} attempts",
                    error_details=error_details
                ) from e

            next_delay = min(delay * backoff_factor * random.uniform(0.8, 1.2), max_delay)

            logger.warning(
                f"Database connection attempt {attempt + 1}/{max_retries} failed, retrying in {next_delay:.2f}s",
                event_type="db_operation_retry",
                operation="get_db",
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=next_delay,
                error_type=type(e).__name__,
                error_details=error_details
            )

            await session.close()
            await asyncio.sleep(next_delay)
            delay = next_delay


async def get_db() -> AsyncGenerator:
    """Dependency to obtain a new database session for each request."""
    async with AsyncSessionLocal() as session:
        await _connect_with_backoff(session)
        logger.debug("Database session created", event_type="db_session_created")
        yield session
        logger.debug("Database session closed", event_type="db_session_closed")


async def check_db_health() -> Dict[str, Any]:
    """Check database health and return status information."""
    try:
        async with AsyncSessionLocal() as session:
            return await healthcheck_database(session)
    except Exception as e:
        exception_class, error_details = classify_exception(e)
        return {
            "status": "unhealthy",
            "error": str(e),
            "error_type": exception_class.__name__,
            "in_degraded_mode": _in_degraded_mode,
            "error_count": _connection_error_count,
            "error_details": error_details
        }


def get_connection_state() -> Dict[str, Any]:
    """Snapshot of the connection tracking used by the health routes."""
    return {
        "in_degraded_mode": _in_degraded_mode,
        "recent_connection_errors": _connection_error_count,
    }

#!/usr/bin/env python3
"""Wait for the database to accept connections, then upgrade to the latest migration."""

import asyncio
import sys

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import engine
from app.log.logging import logger


async def wait_for_db(retries: int = 30, delay: float = 2.0) -> bool:
    for attempt in range(1, retries + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database is ready", event_type="db_ready", attempts=attempt)
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(
                f"Database not ready, {retries - attempt} attempts left",
                event_type="db_wait",
                error=str(e)
            )
            await asyncio.sleep(delay)
        finally:
            await engine.dispose()
    logger.error("Could not connect to the database", event_type="db_wait_failed")
    return False


def run_migrations(config_path: str = "alembic.ini") -> bool:
    logger.info("Running database migrations", event_type="db_migrations_start")
    try:
        command.upgrade(Config(config_path), "head")
    except Exception:
        logger.exception("Database migrations failed")
        return False
    logger.info("Migrations completed successfully", event_type="db_migrations_complete")
    return True


if __name__ == "__main__":
    if not asyncio.run(wait_for_db()):
        sys.exit(1)
    if not run_migrations():
        sys.exit(1)
    sys.exit(0)

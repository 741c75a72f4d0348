"""Create the ledger tables directly from the models (local development and tests)."""

import asyncio
import sys

from app.core.base_model import Base
from app.core.database import engine
from app.log.logging import logger
import app.models  # noqa: F401  registers the tables on Base.metadata


async def init_db(drop_existing: bool = False):
    """Create all tables defined in the models, optionally dropping them first."""
    tables = list(Base.metadata.tables.keys())
    logger.info("Starting database initialization", event_type="db_init_start", tables=tables)

    async with engine.begin() as conn:
        if drop_existing:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created", event_type="db_tables_created", tables=tables)
    await engine.dispose()


def main():
    drop_existing = "--drop" in sys.argv[1:]
    try:
        asyncio.run(init_db(drop_existing=drop_existing))
    except KeyboardInterrupt:
        logger.info("Database initialization interrupted", event_type="db_init_interrupted")
    except Exception:
        logger.exception("Database initialization error")
        sys.exit(1)


if __name__ == "__main__":
    main()

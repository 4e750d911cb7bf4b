#!/usr/bin/env python3
"""Initialize database tables (local runs; production uses alembic)."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from asset_indexer.config.database import create_engine
from asset_indexer.models import Base
from asset_indexer.utils.logging import setup_logging


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Connecting to database...")
    engine = create_engine(pooled=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(
            Base.metadata.create_all,
            checkfirst=True
        )

    await engine.dispose()
    logger.success("Database tables created successfully!")


if __name__ == "__main__":
    setup_logging("INFO")
    asyncio.run(init_database())

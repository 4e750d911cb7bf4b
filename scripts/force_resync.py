#!/usr/bin/env python3
"""
Force re-sync.

Resets the sync watermark so the daemon re-processes blocks from a
height. Use after the derivation logic changed and history must be
re-derived by the daemon itself.

Options:
    --from N            First height to re-process (watermark becomes N-1)
    --clear-transfers   Delete asset transfers at or above N
    --clear-all         Delete blocks, transactions, transfers and future outputs
                        at or above N, relock futures unlocked there
                        (assets are never deleted)
    --confirm           Required

Usage:
    python scripts/force_resync.py --from 100000 --confirm
    python scripts/force_resync.py --from 0 --clear-transfers --confirm
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from asset_indexer.config.database import create_engine, create_session_maker
from asset_indexer.config.settings import settings
from asset_indexer.repositories.block_repository import BlockRepository
from asset_indexer.repositories.sync_state_repository import SyncStateRepository
from asset_indexer.services.backfill_service import BackfillService
from asset_indexer.utils.exceptions import ConfirmationRequiredError
from asset_indexer.utils.logging import SCRIPT_FORMAT, setup_logging


async def force_resync(args: argparse.Namespace) -> int:
    """Reset the watermark. Returns the exit code."""
    engine = create_engine(pooled=False)
    session_maker = create_session_maker(engine)

    try:
        async with session_maker() as session:
            state = await SyncStateRepository(session).get_by_stream(settings.sync_stream)
            if state:
                logger.info(
                    f"Current state: height={state.current_height} "
                    f"status={state.status} errors={state.error_count}"
                )
            else:
                logger.info("No sync state stored yet")
            latest = await BlockRepository(session).get_latest_height()
            logger.info(f"Highest stored block: {latest}")

        result = await BackfillService(session_maker).force_resync(
            args.from_height,
            clear_transfers=args.clear_transfers,
            clear_all=args.clear_all,
            confirm=args.confirm,
        )
        logger.info(f"The daemon will resume at block {result['watermark'] + 1}")
        return 0

    except ConfirmationRequiredError as e:
        logger.error(f"{e}")
        return 2

    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Reset the sync watermark")
    parser.add_argument(
        "--from",
        dest="from_height",
        type=int,
        default=0,
        help="First height to re-process (default: 0)",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--clear-transfers",
        action="store_true",
        help="Delete asset transfers at or above --from",
    )
    group.add_argument(
        "--clear-all",
        action="store_true",
        help="Delete blocks, transactions, transfers and future outputs at or above --from",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Required flag to confirm the reset",
    )
    args = parser.parse_args()

    setup_logging(settings.log_level, fmt=SCRIPT_FORMAT)

    logger.info("=" * 60)
    logger.info("Asset Indexer - Force Re-sync")
    logger.info("=" * 60)

    sys.exit(asyncio.run(force_resync(args)))


if __name__ == "__main__":
    main()

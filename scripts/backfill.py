#!/usr/bin/env python3
"""
Backfill / repair tool.

Re-walks historical blocks through the same pipeline as the sync daemon,
or runs a store-only repair. Pause the sync daemon (or make sure it is
working on a different height range) before running range modes.

Modes:
    range              Re-walk --from..--to
    resync-transfers   Delete transfers in --from..--to, then re-walk (destructive)
    relink-subassets   Recompute sub-asset parent links (store only)
    fix-block-hashes   Fill empty transaction block hashes (store only)

Usage:
    python scripts/backfill.py --mode range --from 100000 --to 100500
    python scripts/backfill.py --mode resync-transfers --from 100000 --confirm
    python scripts/backfill.py --mode relink-subassets
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
from asset_indexer.services.backfill_service import BackfillMode, BackfillService
from asset_indexer.services.chain.data_source import ChainDataSource
from asset_indexer.services.chain.rpc_client import ChainRpcClient
from asset_indexer.utils.exceptions import ConfirmationRequiredError
from asset_indexer.utils.logging import SCRIPT_FORMAT, setup_logging

STORE_ONLY_MODES = {BackfillMode.RELINK_SUBASSETS, BackfillMode.FIX_BLOCK_HASHES}


async def run_backfill(args: argparse.Namespace) -> int:
    """Run the requested mode. Returns the exit code."""
    mode = BackfillMode(args.mode)

    engine = create_engine(pooled=False)
    session_maker = create_session_maker(engine)

    source = None
    if mode not in STORE_ONLY_MODES:
        client = ChainRpcClient(
            settings.rpc_url,
            settings.rpc_user,
            settings.rpc_password,
            timeout=settings.rpc_timeout,
        )
        source = ChainDataSource(client, timeout=settings.rpc_timeout)

    service = BackfillService(session_maker, source)

    try:
        if source:
            health = await source.check_health()
            if health["status"] != "healthy":
                logger.error(f"Node not available: {health.get('error')}")
                return 1
            logger.info(f"Connected to node at block {health['blocks']}")

        progress = await service.run(
            mode,
            from_height=args.from_height,
            to_height=args.to_height,
            confirm=args.confirm,
        )
        return 1 if progress.errors else 0

    except ConfirmationRequiredError as e:
        logger.error(f"{e}")
        return 2

    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        return 2

    finally:
        if source:
            await source.close()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill and repair indexed data")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in BackfillMode],
        default=BackfillMode.RANGE.value,
        help="Backfill mode (default: range)",
    )
    parser.add_argument(
        "--from",
        dest="from_height",
        type=int,
        help="First block height (range modes)",
    )
    parser.add_argument(
        "--to",
        dest="to_height",
        type=int,
        help="Last block height (default: chain tip)",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm destructive steps (required for resync-transfers)",
    )
    args = parser.parse_args()

    setup_logging(settings.log_level, fmt=SCRIPT_FORMAT)

    logger.info("=" * 60)
    logger.info(f"Asset Indexer - Backfill ({args.mode})")
    logger.info("=" * 60)

    sys.exit(asyncio.run(run_backfill(args)))


if __name__ == "__main__":
    main()

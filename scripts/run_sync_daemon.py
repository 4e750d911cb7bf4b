#!/usr/bin/env python3
"""
Sync Daemon.

Keeps the index in step with the chain tip. Only starts when
SYNC_ENABLED=true. SIGINT/SIGTERM stop the daemon after the block in
progress.

Usage:
    python scripts/run_sync_daemon.py
"""

import asyncio
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from asset_indexer.config.database import create_engine, create_session_maker
from asset_indexer.config.settings import settings
from asset_indexer.services.chain.data_source import ChainDataSource
from asset_indexer.services.chain.rpc_client import ChainRpcClient
from asset_indexer.services.sync_orchestrator import SyncOrchestrator
from asset_indexer.utils.exceptions import SyncHaltedError
from asset_indexer.utils.logging import setup_logging


async def run_daemon() -> int:
    """Run the sync daemon until shutdown. Returns the exit code."""
    if not settings.sync_enabled:
        logger.warning("SYNC_ENABLED is not true - sync daemon will not start")
        return 0

    engine = create_engine()
    session_maker = create_session_maker(engine)
    client = ChainRpcClient(
        settings.rpc_url,
        settings.rpc_user,
        settings.rpc_password,
        timeout=settings.rpc_timeout,
    )
    source = ChainDataSource(client, timeout=settings.rpc_timeout)
    orchestrator = SyncOrchestrator(session_maker, source)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, orchestrator.request_shutdown)

    try:
        health = await source.check_health()
        if health["status"] == "healthy":
            logger.info(
                f"Connected to node: chain={health['chain']} "
                f"blocks={health['blocks']} headers={health['headers']}"
            )
        else:
            logger.warning(f"Node not reachable yet: {health.get('error')}")

        await orchestrator.run()
        return 0

    except SyncHaltedError as e:
        logger.critical(f"Sync halted: {e}")
        return 1

    finally:
        await source.close()
        await engine.dispose()


def main() -> None:
    setup_logging(settings.log_level, settings.log_file)

    logger.info("=" * 60)
    logger.info("Asset Indexer - Sync Daemon")
    logger.info("=" * 60)

    sys.exit(asyncio.run(run_daemon()))


if __name__ == "__main__":
    main()

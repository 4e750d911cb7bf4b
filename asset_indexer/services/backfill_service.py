"""
Backfill/Repair Service.

Operator-invoked re-walks and repairs of already indexed data. Range
modes go through the same BlockPipeline as the live sync daemon, so a
corrected derivation rewrites old records exactly as new blocks would
be written.

Modes:
- range: re-walk [from, to]
- resync-transfers: clear transfers in [from, to], then re-walk
- relink-subassets: recompute sub-asset parent links from stored root ids
- fix-block-hashes: fill empty transaction block hashes from stored blocks
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, fields
from enum import StrEnum

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from asset_indexer.config.constants import UNKNOWN_PARENT_NAME
from asset_indexer.config.settings import settings
from asset_indexer.models.enums import SyncStatus
from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.repositories.asset_transfer_repository import (
    AssetTransferRepository,
)
from asset_indexer.repositories.block_repository import BlockRepository
from asset_indexer.repositories.future_output_repository import (
    FutureOutputRepository,
)
from asset_indexer.repositories.sync_state_repository import SyncStateRepository
from asset_indexer.repositories.transaction_repository import (
    TransactionRepository,
)
from asset_indexer.services.chain.data_source import ChainDataSource
from asset_indexer.services.indexer.lineage import compose_sub_asset_name
from asset_indexer.services.indexer.pipeline import BlockPipeline, BlockResult
from asset_indexer.services.indexer.writer import IdempotentWriter, assign
from asset_indexer.utils.db_decorators import with_auto_commit
from asset_indexer.utils.exceptions import ConfirmationRequiredError


class BackfillMode(StrEnum):
    """Backfill modes."""

    RANGE = "range"
    RESYNC_TRANSFERS = "resync-transfers"
    RELINK_SUBASSETS = "relink-subassets"
    FIX_BLOCK_HASHES = "fix-block-hashes"


@dataclass
class BackfillProgress:
    """Counters of one backfill run (never persisted)."""

    blocks: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    transfers: int = 0
    mints: int = 0
    futures: int = 0
    unlocked: int = 0
    warnings: int = 0

    def add_block(self, result: BlockResult) -> None:
        """Fold one block's outcome into the counters."""
        self.blocks += 1
        self.created += result.stats.created
        self.updated += result.stats.updated
        self.unchanged += result.stats.unchanged
        self.errors += result.stats.rejected + result.records.errors
        self.skipped += result.records.skipped
        self.transfers += result.records.transfer_count
        self.mints += result.records.mint_count
        self.futures += result.records.future_count
        self.unlocked += result.unlocked
        self.warnings += len(result.records.warnings)

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class BackfillService:
    """
    Backfill and repair runner.

    Uses its own BackfillProgress and never touches the sync daemon's
    watermark (except force_resync, which exists to reset it).
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        source: ChainDataSource | None = None,
        pipeline: BlockPipeline | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize service.

        Args:
            session_maker: Session factory
            source: Chain data source (not needed for store-only modes)
            pipeline: Shared block pipeline
            sleep: Sleep coroutine (replaced in tests)
        """
        self.session_maker = session_maker
        self.source = source
        self.pipeline = pipeline or BlockPipeline()
        self._sleep = sleep

    async def run(
        self,
        mode: BackfillMode | str,
        from_height: int | None = None,
        to_height: int | None = None,
        confirm: bool = False,
    ) -> BackfillProgress:
        """
        Run a backfill mode.

        Args:
            mode: Backfill mode
            from_height: First height (range modes)
            to_height: Last height (range modes, default chain tip)
            confirm: Operator confirmation for destructive steps

        Returns:
            Run counters

        Raises:
            ConfirmationRequiredError: Destructive mode without confirmation
            ValueError: Missing or invalid range
        """
        mode = BackfillMode(mode)

        if mode == BackfillMode.RELINK_SUBASSETS:
            return await self.relink_subassets()
        if mode == BackfillMode.FIX_BLOCK_HASHES:
            return await self.fix_block_hashes()
        if mode == BackfillMode.RESYNC_TRANSFERS:
            return await self.resync_transfers(from_height, to_height, confirm=confirm)
        return await self.backfill_range(from_height, to_height)

    # ====================================================================
    # RANGE MODES
    # ====================================================================

    async def _resolve_range(
        self, from_height: int | None, to_height: int | None
    ) -> tuple[int, int]:
        if from_height is None:
            raise ValueError("--from is required for range modes")
        if self.source is None:
            raise ValueError("A chain data source is required for range modes")
        if to_height is None:
            to_height = await self.source.chain_height()
        if from_height < 0 or to_height < from_height:
            raise ValueError(f"Invalid range {from_height}..{to_height}")
        return from_height, to_height

    async def backfill_range(
        self,
        from_height: int | None,
        to_height: int | None = None,
    ) -> BackfillProgress:
        """
        Re-walk a height range through the block pipeline.

        Each block is committed on its own. A failing block is counted
        as an error and the run continues.

        Args:
            from_height: First height (inclusive)
            to_height: Last height (inclusive, default chain tip)

        Returns:
            Run counters
        """
        from_height, to_height = await self._resolve_range(from_height, to_height)
        progress = BackfillProgress()
        total = to_height - from_height + 1
        started = time.monotonic()

        logger.info(f"[Backfill] Re-walking blocks {from_height}..{to_height} ({total} blocks)")

        for height in range(from_height, to_height + 1):
            try:
                block = await self.source.block(height)
                async with self.session_maker() as session:
                    try:
                        result = await self.pipeline.process(session, block)
                        await session.commit()
                    except Exception:
                        await session.rollback()
                        raise
                progress.add_block(result)
            except Exception as e:
                progress.errors += 1
                logger.error(f"[Backfill] Block {height} failed: {e}")

            done = height - from_height + 1
            if done % settings.backfill_batch_size == 0:
                elapsed = time.monotonic() - started
                logger.info(
                    f"[Backfill] {done}/{total} blocks | created {progress.created} | "
                    f"updated {progress.updated} | errors {progress.errors} | {elapsed:.1f}s"
                )

        self.log_summary(f"range {from_height}..{to_height}", progress)
        return progress

    async def resync_transfers(
        self,
        from_height: int | None,
        to_height: int | None = None,
        confirm: bool = False,
    ) -> BackfillProgress:
        """
        Clear transfers in a range, reset asset counters, then re-walk.

        Raises:
            ConfirmationRequiredError: Without confirm=True
        """
        if not confirm:
            raise ConfirmationRequiredError(
                "resync-transfers deletes asset transfers; re-run with --confirm"
            )

        from_height, to_height = await self._resolve_range(from_height, to_height)
        await self._grace_period(f"Deleting asset transfers in {from_height}..{to_height}")

        async with self.session_maker() as session:
            deleted = await self._clear_transfers(session, from_height, to_height)
        logger.warning(f"[Backfill] Deleted {deleted} asset transfers")

        return await self.backfill_range(from_height, to_height)

    @with_auto_commit
    async def _clear_transfers(
        self, session: AsyncSession, from_height: int, to_height: int | None
    ) -> int:
        return await self._delete_transfers(session, from_height, to_height)

    async def _delete_transfers(
        self, session: AsyncSession, from_height: int, to_height: int | None
    ) -> int:
        transfers = AssetTransferRepository(session)
        affected = await transfers.affected_asset_ids(from_height, to_height)
        deleted = await transfers.delete_range(from_height, to_height)

        writer = IdempotentWriter(session)
        for asset_id in affected:
            await writer.refresh_asset_totals(asset_id)
        return deleted

    # ====================================================================
    # STORE-ONLY REPAIRS
    # ====================================================================

    async def relink_subassets(self) -> BackfillProgress:
        """
        Recompute sub-asset links from the stored root ids.

        Parent names are upper-cased, sentinel parents are resolved once
        the parent exists, and full names are rebuilt. No chain calls.

        Returns:
            Run counters (updated = relinked assets)
        """
        progress = BackfillProgress()
        async with self.session_maker() as session:
            await self._relink(session, progress)
        self.log_summary("relink-subassets", progress)
        return progress

    @with_auto_commit
    async def _relink(self, session: AsyncSession, progress: BackfillProgress) -> None:
        assets = AssetRepository(session)
        writer = IdempotentWriter(session)

        for child in await assets.find_sub_assets():
            local_name = child.sub_asset_name or child.name
            parent = await assets.get_by_asset_id(child.root_id) if child.root_id else None

            if parent:
                values = {
                    "name": compose_sub_asset_name(parent.name, local_name),
                    "parent_asset_id": parent.asset_id,
                    "parent_asset_name": parent.name.upper(),
                    "parent_pending": False,
                    "sub_asset_name": local_name,
                }
            else:
                values = {
                    "name": compose_sub_asset_name(UNKNOWN_PARENT_NAME, local_name),
                    "parent_asset_id": None,
                    "parent_asset_name": None,
                    "parent_pending": True,
                    "sub_asset_name": local_name,
                }
                progress.warnings += 1
                logger.warning(
                    f"[Backfill] Sub-asset {child.asset_id} ('{local_name}') still has "
                    f"no parent {child.root_id}"
                )

            if assign(child, values):
                progress.updated += 1
                await writer.rename_asset(child.asset_id, child.name)
                logger.info(f"[Backfill] Relinked {child.asset_id} as {child.name}")
            else:
                progress.unchanged += 1

    async def fix_block_hashes(self) -> BackfillProgress:
        """
        Fill empty block hashes of stored transactions.

        Returns:
            Run counters (updated = fixed, skipped = no stored block)
        """
        progress = BackfillProgress()
        async with self.session_maker() as session:
            await self._fix_hashes(session, progress)
        self.log_summary("fix-block-hashes", progress)
        return progress

    @with_auto_commit
    async def _fix_hashes(self, session: AsyncSession, progress: BackfillProgress) -> None:
        blocks = BlockRepository(session)
        hashes: dict[int, str | None] = {}

        for tx in await TransactionRepository(session).find_missing_block_hash():
            if tx.block_height not in hashes:
                block = await blocks.get_by_height(tx.block_height)
                hashes[tx.block_height] = block.hash if block else None

            block_hash = hashes[tx.block_height]
            if not block_hash:
                progress.skipped += 1
                logger.warning(
                    f"[Backfill] No stored block {tx.block_height} for tx {tx.txid}; "
                    f"run a range backfill first"
                )
                continue

            tx.block_hash = block_hash
            progress.updated += 1

    # ====================================================================
    # FORCE RESYNC
    # ====================================================================

    async def force_resync(
        self,
        from_height: int,
        clear_transfers: bool = False,
        clear_all: bool = False,
        confirm: bool = False,
    ) -> dict[str, int]:
        """
        Reset the sync watermark so the daemon re-processes from a height.

        Args:
            from_height: First height the daemon will process again
            clear_transfers: Delete transfers at or above from_height
            clear_all: Delete blocks, transactions, transfers and future
                outputs at or above from_height and lock again the futures
                unlocked there (assets are kept)
            confirm: Operator confirmation

        Returns:
            Dict with deleted row counts and the new watermark

        Raises:
            ConfirmationRequiredError: Without confirm=True
        """
        if not confirm:
            raise ConfirmationRequiredError(
                "force-resync resets the sync watermark; re-run with --confirm"
            )
        if from_height < 0:
            raise ValueError(f"Invalid height {from_height}")

        await self._grace_period(f"Resetting sync watermark to {max(from_height - 1, 0)}")

        async with self.session_maker() as session:
            result = await self._reset(session, from_height, clear_transfers, clear_all)

        logger.success(
            f"[Backfill] Watermark reset to {result['watermark']} "
            f"(transfers -{result['transfers']}, transactions -{result['transactions']}, "
            f"blocks -{result['blocks']}, futures -{result['futures']}, "
            f"relocked {result['relocked']})"
        )
        return result

    @with_auto_commit
    async def _reset(
        self,
        session: AsyncSession,
        from_height: int,
        clear_transfers: bool,
        clear_all: bool,
    ) -> dict[str, int]:
        result = {"transfers": 0, "transactions": 0, "blocks": 0, "futures": 0, "relocked": 0}

        if clear_transfers or clear_all:
            result["transfers"] = await self._delete_transfers(session, from_height, None)
        if clear_all:
            result["transactions"] = await TransactionRepository(session).delete_from_height(
                from_height
            )
            result["blocks"] = await BlockRepository(session).delete_from_height(from_height)
            futures = FutureOutputRepository(session)
            result["futures"] = await futures.delete_from_height(from_height)
            result["relocked"] = await futures.relock_from_height(from_height)

        watermark = max(from_height - 1, 0)
        state = await SyncStateRepository(session).get_or_create(
            settings.sync_stream, start_height=settings.sync_start_height
        )
        state.current_height = watermark
        state.status = SyncStatus.NOT_STARTED
        state.last_error = None
        result["watermark"] = watermark
        return result

    # ====================================================================
    # HELPERS
    # ====================================================================

    async def _grace_period(self, action: str) -> None:
        delay = settings.backfill_confirm_delay
        logger.warning(f"[Backfill] {action} in {delay:.0f}s (Ctrl+C to abort)")
        await self._sleep(delay)

    @staticmethod
    def log_summary(title: str, progress: BackfillProgress) -> None:
        """Log the final counters of a run."""
        logger.info("=" * 60)
        logger.info(f"[Backfill] Summary: {title}")
        logger.info("=" * 60)
        for name, value in progress.as_dict().items():
            logger.info(f"  {name:<10} {value}")
        logger.info("=" * 60)
        if progress.errors:
            logger.warning(f"[Backfill] Finished with {progress.errors} error(s)")
        else:
            logger.success(f"[Backfill] {title} completed")

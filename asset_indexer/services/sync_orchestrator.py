"""
Sync Orchestrator.

Drives block ingestion from the stored watermark to the chain tip:
Idle -> Advancing -> (Caught-up | Error) -> Advancing...

Each block is written in one database transaction together with the
watermark advance, so the watermark never points past a partially
written block. Re-processing after a crash is idempotent.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from asset_indexer.config.settings import settings
from asset_indexer.models.enums import SyncStatus
from asset_indexer.repositories.sync_state_repository import SyncStateRepository
from asset_indexer.services.chain.data_source import ChainDataSource
from asset_indexer.services.chain.payloads import ChainBlock
from asset_indexer.services.indexer.pipeline import BlockPipeline
from asset_indexer.utils.datetime_utils import utc_now
from asset_indexer.utils.db_decorators import with_auto_commit
from asset_indexer.utils.exceptions import (
    ChainSourceError,
    SyncHaltedError,
    is_transient,
)


@dataclass
class SyncProgress:
    """Explicit sync progress of one stream."""

    stream: str
    current_height: int = 0
    target_height: int = 0
    start_height: int = 0
    status: str = SyncStatus.NOT_STARTED
    blocks_processed: int = 0
    items_processed: int = 0
    average_block_ms: float = 0.0
    error_count: int = 0
    last_error: str | None = None
    last_synced_at: datetime | None = None

    def advanced(self, height: int, items: int, elapsed_ms: float) -> "SyncProgress":
        """
        Return the progress after committing a block.

        Args:
            height: Height of the processed block
            items: Asset-bearing transactions stored
            elapsed_ms: Processing time of the block

        Returns:
            New progress object (self is not modified)
        """
        blocks = self.blocks_processed + 1
        return replace(
            self,
            current_height=height,
            status=SyncStatus.SYNCING,
            blocks_processed=blocks,
            items_processed=self.items_processed + items,
            average_block_ms=self.average_block_ms
            + (elapsed_ms - self.average_block_ms) / blocks,
            last_error=None,
            last_synced_at=utc_now(),
        )


class SyncStateStore:
    """Load/save boundary between SyncProgress and the sync_state table."""

    def __init__(self, stream: str, start_height: int = 0) -> None:
        """
        Initialize store.

        Args:
            stream: Stream name of the SyncState row
            start_height: Watermark used when no row exists yet
        """
        self.stream = stream
        self.start_height = start_height

    async def load(self, session: AsyncSession) -> SyncProgress:
        """Load progress, creating the state row if needed."""
        state = await SyncStateRepository(session).get_or_create(
            self.stream, start_height=self.start_height
        )
        return SyncProgress(
            stream=state.stream,
            current_height=state.current_height,
            target_height=state.target_height,
            start_height=state.start_height,
            status=state.status,
            blocks_processed=state.blocks_processed,
            items_processed=state.items_processed,
            average_block_ms=state.average_block_ms,
            error_count=state.error_count,
            last_error=state.last_error,
            last_synced_at=state.last_synced_at,
        )

    async def save(self, session: AsyncSession, progress: SyncProgress) -> None:
        """Write progress into the state row (caller commits)."""
        state = await SyncStateRepository(session).get_or_create(
            self.stream, start_height=self.start_height
        )
        state.current_height = progress.current_height
        state.target_height = progress.target_height
        state.status = progress.status
        state.blocks_processed = progress.blocks_processed
        state.items_processed = progress.items_processed
        state.average_block_ms = progress.average_block_ms
        state.error_count = progress.error_count
        state.last_error = progress.last_error
        state.last_synced_at = progress.last_synced_at
        await session.flush()


class SyncOrchestrator:
    """
    Block sync daemon.

    Features:
    - Resume from the stored watermark
    - Per-block atomic commit of records, matured future unlocks and watermark
    - Capped exponential backoff on source outages
    - Bounded retries per block, then halt with an operator-visible error
    - Pause/resume and graceful shutdown between blocks
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        source: ChainDataSource,
        pipeline: BlockPipeline | None = None,
        state_store: SyncStateStore | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            session_maker: Session factory
            source: Chain data source (chain_height/block)
            pipeline: Shared block pipeline
            state_store: Progress load/save boundary
            sleep: Sleep coroutine (replaced in tests)
        """
        self.session_maker = session_maker
        self.source = source
        self.pipeline = pipeline or BlockPipeline()
        self.state_store = state_store or SyncStateStore(
            settings.sync_stream, start_height=settings.sync_start_height
        )
        self._sleep = sleep

        self.progress: SyncProgress | None = None
        self._paused = False
        self._shutdown = False
        self._source_failures = 0

    # ====================================================================
    # CONTROL
    # ====================================================================

    def pause(self) -> None:
        """Pause after the current block."""
        self._paused = True
        logger.info("[Sync] Pause requested")

    def resume(self) -> None:
        """Resume a paused daemon."""
        self._paused = False
        logger.info("[Sync] Resumed")

    def request_shutdown(self) -> None:
        """Stop after the current block."""
        self._shutdown = True
        logger.info("[Sync] Shutdown requested")

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ====================================================================
    # MAIN LOOP
    # ====================================================================

    async def run(self) -> None:
        """
        Run until shutdown is requested.

        Raises:
            SyncHaltedError: If a block keeps failing after all retries
        """
        if not settings.sync_enabled:
            logger.warning("[Sync] Sync daemon disabled (SYNC_ENABLED=false), not starting")
            return

        progress = await self.load_progress()
        logger.info(
            f"[Sync] Starting stream '{progress.stream}' "
            f"from height {progress.current_height}"
        )

        while not self._shutdown:
            if self._paused:
                await self._set_status(SyncStatus.PAUSED)
                await self._sleep(settings.sync_pause_interval)
                continue

            try:
                caught_up = await self.sync_to_tip()
            except ChainSourceError as e:
                delay = self._source_backoff()
                logger.warning(
                    f"[Sync] Chain source unavailable: {e}. Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            if caught_up and not self._shutdown:
                await self._set_status(SyncStatus.SYNCED)
                logger.debug(
                    f"[Sync] Caught up at {self.progress.current_height}, "
                    f"sleeping {settings.sync_poll_interval}s"
                )
                await self._sleep(settings.sync_poll_interval)

        await self._set_status(SyncStatus.PAUSED)
        logger.info(f"[Sync] Stopped at height {self.progress.current_height}")

    async def load_progress(self) -> SyncProgress:
        """Load progress through the state store."""
        async with self.session_maker() as session:
            self.progress = await self.state_store.load(session)
            await session.commit()
        return self.progress

    async def sync_to_tip(self) -> bool:
        """
        Process blocks from the watermark up to the current tip.

        Returns:
            True if the watermark reached the tip

        Raises:
            ChainSourceError: Source unavailable (watermark not advanced)
            SyncHaltedError: A block failed all retries
        """
        if self.progress is None:
            await self.load_progress()

        tip = await self.source.chain_height()
        self._source_failures = 0
        self.progress.target_height = tip

        while self.progress.current_height < tip:
            if self._shutdown or self._paused:
                return False
            await self.process_height(self.progress.current_height + 1)

        return True

    async def process_height(self, height: int) -> None:
        """
        Fetch, process and commit one block with bounded retries.

        Args:
            height: Block height (watermark + 1)

        Raises:
            ChainSourceError: Source unavailable
            SyncHaltedError: All attempts failed
        """
        attempts = settings.sync_retry_attempts
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                block = await self.source.block(height)
                await self._commit_block(block)
                return
            except Exception as e:
                if is_transient(e):
                    raise
                last_error = e
                logger.error(
                    f"[Sync] Block {height} failed on attempt {attempt}/{attempts}: {e}"
                )
                if attempt < attempts:
                    await self._sleep(settings.sync_retry_delay * attempt)

        await self._record_halt(height, last_error)
        raise SyncHaltedError(height, attempts, last_error)

    # ====================================================================
    # INTERNALS
    # ====================================================================

    async def _commit_block(self, block: ChainBlock) -> None:
        started = time.monotonic()

        async with self.session_maker() as session:
            try:
                result = await self.pipeline.process(session, block)
                elapsed_ms = (time.monotonic() - started) * 1000
                progress = self.progress.advanced(block.height, result.items, elapsed_ms)
                await self.state_store.save(session, progress)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        self.progress = progress

        if progress.blocks_processed % settings.sync_log_interval == 0:
            logger.info(
                f"[Sync] Block {block.height}/{progress.target_height} | "
                f"avg {progress.average_block_ms:.1f}ms/block | "
                f"{progress.items_processed} asset txs"
            )
        if result.unlocked:
            logger.info(
                f"[Sync] Block {block.height}: {result.unlocked} future output(s) unlocked"
            )
        if result.records.warnings:
            logger.info(
                f"[Sync] Block {block.height}: {len(result.records.warnings)} "
                f"warning(s) queued for reconciliation"
            )

    def _source_backoff(self) -> float:
        self._source_failures += 1
        delay = settings.sync_retry_delay * (2 ** (self._source_failures - 1))
        return min(delay, settings.sync_max_source_backoff)

    async def _set_status(self, status: SyncStatus) -> None:
        if self.progress is None or self.progress.status == status:
            return
        self.progress = replace(self.progress, status=status)
        async with self.session_maker() as session:
            await self._save(session, self.progress)

    async def _record_halt(self, height: int, error: Exception | None) -> None:
        self.progress = replace(
            self.progress,
            status=SyncStatus.ERROR,
            error_count=self.progress.error_count + 1,
            last_error=f"block {height}: {error}",
        )
        async with self.session_maker() as session:
            await self._save(session, self.progress)
        logger.critical(
            f"[Sync] Halting at block {height}; watermark stays at "
            f"{self.progress.current_height}. Operator action required."
        )

    @with_auto_commit
    async def _save(self, session: AsyncSession, progress: SyncProgress) -> None:
        await self.state_store.save(session, progress)

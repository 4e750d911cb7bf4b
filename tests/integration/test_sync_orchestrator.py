"""
Integration tests for the sync orchestrator.

Uses the fake chain source and an in-memory SQLite database. Sleeps are
replaced so retry and backoff delays are only recorded.
"""

import pytest
from sqlalchemy import func, select

from asset_indexer.config.settings import settings
from asset_indexer.models import AssetTransfer
from asset_indexer.models.enums import SyncStatus
from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.repositories.block_repository import BlockRepository
from asset_indexer.repositories.sync_state_repository import SyncStateRepository
from asset_indexer.services.indexer.pipeline import BlockPipeline
from asset_indexer.services.sync_orchestrator import (
    SyncOrchestrator,
    SyncProgress,
    SyncStateStore,
)
from asset_indexer.utils.exceptions import SyncHaltedError
from chain_factory import (
    FakeChainSource,
    create_tx,
    make_block,
    mint_tx,
    snapshot,
    transfer_tx,
    txid,
)

GOLD_ID = txid("gold")


def _chain(length: int) -> FakeChainSource:
    """Chain with GOLD created at 1, minted at 2 and moved in every later block."""
    blocks = {
        1: make_block(1, [create_tx("gold", "GOLD")]),
        2: make_block(2, [mint_tx("mint", GOLD_ID, 1000, target="RAlice")]),
    }
    for height in range(3, length + 1):
        blocks[height] = make_block(
            height,
            [transfer_tx(f"move-{height}", "RAlice", [("RBob", GOLD_ID, "GOLD", height)])],
        )
    return FakeChainSource(blocks)


async def _watermark(session_maker) -> int:
    async with session_maker() as session:
        state = await SyncStateRepository(session).get_by_stream(settings.sync_stream)
        return state.current_height


class CrashingStateStore(SyncStateStore):
    """State store that fails once while saving a given height."""

    def __init__(self, crash_at: int) -> None:
        super().__init__(settings.sync_stream)
        self.crash_at = crash_at
        self.crashed = False

    async def save(self, session, progress: SyncProgress) -> None:
        if progress.current_height == self.crash_at and not self.crashed:
            self.crashed = True
            raise RuntimeError("process killed")
        await super().save(session, progress)


class TestSyncToTip:
    """Test block advancement."""

    @pytest.mark.asyncio
    async def test_syncs_to_tip(self, session_maker, no_sleep):
        """The watermark reaches the tip and every block is stored."""
        source = _chain(10)
        orchestrator = SyncOrchestrator(session_maker, source, sleep=no_sleep)

        caught_up = await orchestrator.sync_to_tip()

        assert caught_up is True
        assert await _watermark(session_maker) == 10
        assert source.block_calls == list(range(1, 11))
        assert orchestrator.progress.blocks_processed == 10
        assert orchestrator.progress.items_processed == 10

    @pytest.mark.asyncio
    async def test_resumes_from_watermark(self, session_maker, no_sleep):
        """A new orchestrator continues after the stored watermark."""
        source = _chain(10)
        source.tip = 6
        await SyncOrchestrator(session_maker, source, sleep=no_sleep).sync_to_tip()

        source.tip = 10
        source.block_calls.clear()
        await SyncOrchestrator(session_maker, source, sleep=no_sleep).sync_to_tip()

        assert source.block_calls == [7, 8, 9, 10]
        assert await _watermark(session_maker) == 10

    @pytest.mark.asyncio
    async def test_start_height_for_new_stream(self, session_maker, no_sleep):
        """Without stored state the configured start height is used."""
        source = _chain(10)
        orchestrator = SyncOrchestrator(
            session_maker,
            source,
            state_store=SyncStateStore(settings.sync_stream, start_height=7),
            sleep=no_sleep,
        )

        await orchestrator.sync_to_tip()

        assert source.block_calls == [8, 9, 10]

    @pytest.mark.asyncio
    async def test_crash_before_watermark_update(self, session_maker, no_sleep):
        """Records written for block 7 without a watermark advance are re-processed cleanly."""
        source = _chain(10)
        source.tip = 6
        await SyncOrchestrator(session_maker, source, sleep=no_sleep).sync_to_tip()

        # Block 7 committed by a process that died before saving the watermark
        async with session_maker() as session:
            await BlockPipeline().process(session, source.blocks[7])
            await session.commit()
        assert await _watermark(session_maker) == 6

        source.tip = 10
        await SyncOrchestrator(session_maker, source, sleep=no_sleep).sync_to_tip()

        assert await _watermark(session_maker) == 10
        async with session_maker() as session:
            at_seven = (
                await session.execute(
                    select(func.count()).select_from(AssetTransfer).where(AssetTransfer.block_height == 7)
                )
            ).scalar_one()
            assert at_seven == 1

            stored = await snapshot(session)
            assert len(stored["blocks"]) == 10
            # One mint plus one transfer per block from 3 to 10
            assert len(stored["asset_transfers"]) == 9

            asset = await AssetRepository(session).get_by_asset_id(GOLD_ID)
            assert asset.mint_count == 1
            assert asset.transfer_count == 8

    @pytest.mark.asyncio
    async def test_failed_save_rolls_back_block(self, session_maker, no_sleep):
        """A failure while saving progress rolls back the block and retries it."""
        source = _chain(8)
        store = CrashingStateStore(crash_at=5)
        orchestrator = SyncOrchestrator(session_maker, source, state_store=store, sleep=no_sleep)

        await orchestrator.sync_to_tip()

        assert store.crashed is True
        assert source.block_calls.count(5) == 2
        assert await _watermark(session_maker) == 8
        async with session_maker() as session:
            count = (
                await session.execute(
                    select(func.count()).select_from(AssetTransfer).where(AssetTransfer.block_height == 5)
                )
            ).scalar_one()
            assert count == 1


class TestHaltAndBackoff:
    """Test error handling of the daemon."""

    @pytest.mark.asyncio
    async def test_halts_after_retries(self, session_maker, no_sleep, sleeps):
        """A block that keeps failing halts the daemon with an error status."""
        source = _chain(5)
        source.blocks[3] = make_block(3, [], hash_="")
        orchestrator = SyncOrchestrator(session_maker, source, sleep=no_sleep)

        with pytest.raises(SyncHaltedError) as exc_info:
            await orchestrator.sync_to_tip()

        assert exc_info.value.height == 3
        assert source.block_calls.count(3) == settings.sync_retry_attempts
        assert len(sleeps) == settings.sync_retry_attempts - 1

        async with session_maker() as session:
            state = await SyncStateRepository(session).get_by_stream(settings.sync_stream)
            assert state.current_height == 2
            assert state.status == SyncStatus.ERROR
            assert state.error_count == 1
            assert "block 3" in state.last_error
            assert await BlockRepository(session).get_by_height(3) is None

    @pytest.mark.asyncio
    async def test_source_outage_backoff(self, session_maker, monkeypatch):
        """Source outages back off exponentially and do not advance the watermark."""
        monkeypatch.setattr(settings, "sync_enabled", True)
        source = _chain(4)
        source.height_failures = 3
        delays = []

        async def sleep(delay):
            delays.append(delay)
            if delay == settings.sync_poll_interval:
                orchestrator.request_shutdown()

        orchestrator = SyncOrchestrator(session_maker, source, sleep=sleep)
        await orchestrator.run()

        base = settings.sync_retry_delay
        assert delays[:3] == [base, base * 2, base * 4]
        assert delays[3] == settings.sync_poll_interval
        assert await _watermark(session_maker) == 4

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self, session_maker, monkeypatch):
        """The outage backoff never exceeds the configured cap."""
        monkeypatch.setattr(settings, "sync_retry_delay", 100.0)
        monkeypatch.setattr(settings, "sync_max_source_backoff", 250.0)
        orchestrator = SyncOrchestrator(session_maker, FakeChainSource())

        delays = [orchestrator._source_backoff() for _ in range(4)]

        assert delays == [100.0, 200.0, 250.0, 250.0]


class TestRunControl:
    """Test enable switch, pause and shutdown."""

    @pytest.mark.asyncio
    async def test_disabled_daemon_does_nothing(self, session_maker, no_sleep):
        """With SYNC_ENABLED=false the daemon returns without syncing."""
        source = _chain(3)
        orchestrator = SyncOrchestrator(session_maker, source, sleep=no_sleep)

        await orchestrator.run()

        assert source.block_calls == []
        async with session_maker() as session:
            assert await SyncStateRepository(session).get_by_stream(settings.sync_stream) is None

    @pytest.mark.asyncio
    async def test_pause_then_shutdown(self, session_maker, monkeypatch):
        """A paused daemon processes nothing and reports the paused status."""
        monkeypatch.setattr(settings, "sync_enabled", True)
        source = _chain(3)
        statuses = []

        async def sleep(delay):
            statuses.append(orchestrator.progress.status)
            orchestrator.request_shutdown()

        orchestrator = SyncOrchestrator(session_maker, source, sleep=sleep)
        orchestrator.pause()
        await orchestrator.run()

        assert orchestrator.is_paused is True
        assert statuses == [SyncStatus.PAUSED]
        assert source.block_calls == []
        assert await _watermark(session_maker) == 0

    @pytest.mark.asyncio
    async def test_caught_up_status(self, session_maker, monkeypatch):
        """Reaching the tip marks the stream as synced before sleeping."""
        monkeypatch.setattr(settings, "sync_enabled", True)
        source = _chain(3)
        statuses = []

        async def sleep(delay):
            statuses.append(orchestrator.progress.status)
            orchestrator.request_shutdown()

        orchestrator = SyncOrchestrator(session_maker, source, sleep=sleep)
        await orchestrator.run()

        assert statuses == [SyncStatus.SYNCED]
        async with session_maker() as session:
            state = await SyncStateRepository(session).get_by_stream(settings.sync_stream)
            assert state.current_height == 3
            assert state.status == SyncStatus.PAUSED

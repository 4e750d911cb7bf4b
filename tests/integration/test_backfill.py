"""
Integration tests for the backfill/repair service.

Covers range re-walks, sentinel reconciliation, store-only repairs and
the watermark reset.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from asset_indexer.config.settings import settings
from asset_indexer.models import AssetTransfer, Transaction
from asset_indexer.models.enums import (
    FutureStatus,
    SyncStatus,
    TransactionKind,
    UnlockReason,
)
from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.repositories.asset_transfer_repository import AssetTransferRepository
from asset_indexer.repositories.block_repository import BlockRepository
from asset_indexer.repositories.future_output_repository import FutureOutputRepository
from asset_indexer.repositories.sync_state_repository import SyncStateRepository
from asset_indexer.repositories.transaction_repository import TransactionRepository
from asset_indexer.services.backfill_service import BackfillMode, BackfillService
from asset_indexer.services.sync_orchestrator import SyncOrchestrator
from asset_indexer.utils.exceptions import ConfirmationRequiredError
from chain_factory import (
    FakeChainSource,
    create_tx,
    future_tx,
    make_block,
    mint_tx,
    transfer_tx,
    txid,
)

PARENT_ID = txid("nukeboom")
CHILD_ID = txid("tower")


@pytest.fixture
def lineage_chain():
    """Parent at 1, child at 2, child moved at 3, parent minted at 4."""
    return FakeChainSource(
        {
            1: make_block(1, [create_tx("nukeboom", "nukeboom")]),
            2: make_block(2, [create_tx("tower", "tower", is_root=False, root_id=PARENT_ID)]),
            3: make_block(3, [transfer_tx("move", "ROwnerAddress", [("RBob", CHILD_ID, None, 1)])]),
            4: make_block(4, [mint_tx("mint", PARENT_ID, 500)]),
        }
    )


@pytest.fixture
def service(session_maker, lineage_chain, no_sleep):
    """Backfill service over the lineage chain."""
    return BackfillService(session_maker, source=lineage_chain, sleep=no_sleep)


class TestRangeBackfill:
    """Test range re-walks."""

    @pytest.mark.asyncio
    async def test_range(self, service, session_maker):
        """A range re-walk stores every block of the range."""
        progress = await service.run(BackfillMode.RANGE, from_height=1, to_height=4)

        assert progress.blocks == 4
        assert progress.errors == 0
        assert progress.transfers == 1
        assert progress.mints == 1
        async with session_maker() as session:
            assert await BlockRepository(session).get_latest_height() == 4

    @pytest.mark.asyncio
    async def test_range_defaults_to_chain_tip(self, service, lineage_chain):
        """Without --to the range ends at the chain tip."""
        progress = await service.backfill_range(3)

        assert progress.blocks == 2
        assert lineage_chain.block_calls == [3, 4]

    @pytest.mark.asyncio
    async def test_range_requires_start(self, service):
        """Range modes need a start height."""
        with pytest.raises(ValueError):
            await service.run("range")

    @pytest.mark.asyncio
    async def test_invalid_range(self, service):
        """An inverted range is rejected."""
        with pytest.raises(ValueError):
            await service.backfill_range(4, 2)

    @pytest.mark.asyncio
    async def test_failing_block_counted(self, session_maker, lineage_chain, no_sleep):
        """A failing block is counted and the run continues."""
        del lineage_chain.blocks[2]
        service = BackfillService(session_maker, source=lineage_chain, sleep=no_sleep)

        progress = await service.backfill_range(1, 3)

        assert progress.errors == 1
        assert progress.blocks == 2

    @pytest.mark.asyncio
    async def test_backfill_matches_live_sync(self, session_maker, lineage_chain, no_sleep):
        """Backfill and the daemon write identical records for the same blocks."""
        await SyncOrchestrator(session_maker, lineage_chain, sleep=no_sleep).sync_to_tip()
        async with session_maker() as session:
            synced = await AssetRepository(session).get_by_asset_id(CHILD_ID)
            synced_name = synced.name

        progress = await BackfillService(session_maker, source=lineage_chain).backfill_range(1, 4)

        assert progress.created == 0
        assert progress.updated == 0
        assert synced_name == "NUKEBOOM|tower"


class TestSentinelReconciliation:
    """Test resolution of sub-assets indexed before their parent."""

    @pytest.mark.asyncio
    async def test_child_before_parent_resolved_by_range(self, service, session_maker):
        """Re-walking the child's height after the parent exists fixes the link."""
        await service.backfill_range(2, 3)

        async with session_maker() as session:
            pending = await AssetRepository(session).find_pending_parent()
            assert [a.asset_id for a in pending] == [CHILD_ID]
            assert pending[0].name == "UNKNOWN|tower"

        await service.backfill_range(1, 1)
        await service.backfill_range(2, 3)

        async with session_maker() as session:
            child = await AssetRepository(session).get_by_asset_id(CHILD_ID)
            assert child.name == "NUKEBOOM|tower"
            assert child.parent_asset_id == PARENT_ID
            assert child.parent_asset_name == "NUKEBOOM"
            assert child.parent_pending is False

            transfer = await AssetTransferRepository(session).get_by_natural_key(txid("move"), 0)
            assert transfer.asset_name == "NUKEBOOM|tower"
            assert await AssetRepository(session).find_pending_parent() == []

    @pytest.mark.asyncio
    async def test_child_height_alone_renames_later_records(self, service, session_maker):
        """Re-walking only the child's height renames its records at later heights."""
        await service.backfill_range(2, 3)
        await service.backfill_range(1, 1)

        await service.backfill_range(2, 2)

        async with session_maker() as session:
            child = await AssetRepository(session).get_by_asset_id(CHILD_ID)
            assert child.name == "NUKEBOOM|tower"

            transfer = await AssetTransferRepository(session).get_by_natural_key(txid("move"), 0)
            assert transfer.asset_name == child.name

            txs = await TransactionRepository(session).find_by_asset(CHILD_ID)
            assert len(txs) == 2
            assert {t.asset_name for t in txs} == {child.name}

    @pytest.mark.asyncio
    async def test_relink_subassets(self, service, session_maker, lineage_chain):
        """relink-subassets resolves sentinels from stored data only."""
        await service.backfill_range(2, 3)
        await service.backfill_range(1, 1)
        lineage_chain.block_calls.clear()

        progress = await service.run(BackfillMode.RELINK_SUBASSETS)

        assert progress.updated == 1
        assert lineage_chain.block_calls == []
        async with session_maker() as session:
            child = await AssetRepository(session).get_by_asset_id(CHILD_ID)
            assert child.name == "NUKEBOOM|tower"
            assert child.parent_pending is False

            transfers = await AssetTransferRepository(session).find_by_asset(CHILD_ID)
            assert [t.asset_name for t in transfers] == ["NUKEBOOM|tower"]

            txs = await TransactionRepository(session).find_by_asset(CHILD_ID)
            assert {t.asset_name for t in txs} == {"NUKEBOOM|tower"}
            assert {t.tx_type for t in txs} == {
                TransactionKind.ASSET_CREATE,
                TransactionKind.ASSET_TRANSFER,
            }

    @pytest.mark.asyncio
    async def test_relink_is_idempotent(self, service):
        """A second relink changes nothing."""
        await service.backfill_range(1, 3)

        progress = await service.relink_subassets()

        assert progress.updated == 0
        assert progress.unchanged == 1

    @pytest.mark.asyncio
    async def test_relink_without_parent(self, service, session_maker):
        """Sub-assets whose parent is still missing keep the sentinel."""
        await service.backfill_range(2, 2)

        progress = await service.relink_subassets()

        assert progress.warnings == 1
        assert progress.updated == 0
        async with session_maker() as session:
            child = await AssetRepository(session).get_by_asset_id(CHILD_ID)
            assert child.name == "UNKNOWN|tower"
            assert child.parent_pending is True


class TestStoreRepairs:
    """Test destructive and store-only repairs."""

    @pytest.mark.asyncio
    async def test_fix_block_hashes(self, session_maker, service):
        """Empty transaction hashes are filled from stored blocks."""
        await service.backfill_range(1, 1)
        async with session_maker() as session:
            for label, height in (("legacy", 1), ("orphan", 9)):
                session.add(
                    Transaction(
                        txid=txid(label),
                        block_height=height,
                        block_hash="",
                        tx_index=5,
                        timestamp=datetime(2024, 1, 1, tzinfo=UTC),
                        tx_type=TransactionKind.ASSET_TRANSFER,
                        type_code=0,
                        inputs=[],
                        outputs=[],
                    )
                )
            await session.commit()

        progress = await service.run("fix-block-hashes")

        assert progress.updated == 1
        assert progress.skipped == 1
        async with session_maker() as session:
            repo = TransactionRepository(session)
            fixed = await repo.get_by_txid(txid("legacy"))
            assert fixed.block_hash == service.source.blocks[1].hash
            assert [t.txid for t in await repo.find_missing_block_hash()] == [txid("orphan")]

    @pytest.mark.asyncio
    async def test_resync_transfers_requires_confirmation(self, service):
        """Deleting transfers needs explicit confirmation."""
        with pytest.raises(ConfirmationRequiredError):
            await service.run(BackfillMode.RESYNC_TRANSFERS, from_height=1, to_height=4)

    @pytest.mark.asyncio
    async def test_resync_transfers(self, service, session_maker, sleeps):
        """Transfers are cleared and re-derived, counters recomputed."""
        await service.backfill_range(1, 4)
        async with session_maker() as session:
            await session.execute(
                update(AssetTransfer).where(AssetTransfer.txid == txid("mint")).values(amount=Decimal("1"))
            )
            await session.commit()

        progress = await service.run(
            BackfillMode.RESYNC_TRANSFERS, from_height=4, to_height=4, confirm=True
        )

        assert sleeps == [settings.backfill_confirm_delay]
        assert progress.mints == 1
        async with session_maker() as session:
            mint = await AssetTransferRepository(session).get_by_natural_key(txid("mint"), 0)
            assert mint.amount == Decimal("500")
            parent = await AssetRepository(session).get_by_asset_id(PARENT_ID)
            assert parent.total_supply == Decimal("500")
            # Transfers outside the range are untouched
            assert await AssetTransferRepository(session).get_by_natural_key(txid("move"), 0)


class TestForceResync:
    """Test the watermark reset."""

    @pytest.mark.asyncio
    async def test_requires_confirmation(self, service):
        """The reset needs explicit confirmation."""
        with pytest.raises(ConfirmationRequiredError):
            await service.force_resync(2)

    @pytest.mark.asyncio
    async def test_reset_and_resync(self, session_maker, lineage_chain, service, no_sleep):
        """Clearing everything above a height lets the daemon rebuild it."""
        await SyncOrchestrator(session_maker, lineage_chain, sleep=no_sleep).sync_to_tip()

        result = await service.force_resync(3, clear_all=True, confirm=True)

        assert result == {
            "transfers": 2,
            "transactions": 2,
            "blocks": 2,
            "futures": 0,
            "relocked": 0,
            "watermark": 2,
        }
        async with session_maker() as session:
            state = await SyncStateRepository(session).get_by_stream(settings.sync_stream)
            assert state.current_height == 2
            assert state.status == SyncStatus.NOT_STARTED
            assert await BlockRepository(session).get_latest_height() == 2
            # Assets are never deleted
            parent = await AssetRepository(session).get_by_asset_id(PARENT_ID)
            assert parent is not None
            assert parent.total_supply == Decimal("0")

        lineage_chain.block_calls.clear()
        await SyncOrchestrator(session_maker, lineage_chain, sleep=no_sleep).sync_to_tip()

        assert lineage_chain.block_calls == [3, 4]
        async with session_maker() as session:
            parent = await AssetRepository(session).get_by_asset_id(PARENT_ID)
            assert parent.total_supply == Decimal("500")

    @pytest.mark.asyncio
    async def test_reset_without_clearing(self, session_maker, service):
        """A plain reset only moves the watermark."""
        await service.backfill_range(1, 4)

        result = await service.force_resync(1, confirm=True)

        assert result["watermark"] == 0
        assert result["blocks"] == 0
        async with session_maker() as session:
            assert await BlockRepository(session).get_latest_height() == 4

    @pytest.mark.asyncio
    async def test_reset_clears_and_relocks_futures(self, session_maker, no_sleep):
        """Futures created above the height are deleted, those unlocked there relocked."""
        outputs = [{"address": "RHeir", "value": "2"}]
        chain = FakeChainSource(
            {
                1: make_block(1),
                2: make_block(2, [future_tx("early", "RSender", outputs, maturity=2, lock_time=-1)]),
                3: make_block(3),
                4: make_block(4, [future_tx("late", "RSender", outputs, maturity=10, lock_time=-1)]),
            }
        )
        await SyncOrchestrator(session_maker, chain, sleep=no_sleep).sync_to_tip()
        async with session_maker() as session:
            early = await FutureOutputRepository(session).get_by_natural_key(txid("early"), 0)
            assert early.status == FutureStatus.UNLOCKED
            assert early.unlocked_height == 4

        service = BackfillService(session_maker, source=chain, sleep=no_sleep)
        result = await service.force_resync(4, clear_all=True, confirm=True)

        assert result["futures"] == 1
        assert result["relocked"] == 1
        async with session_maker() as session:
            repo = FutureOutputRepository(session)
            assert await repo.get_by_natural_key(txid("late"), 0) is None
            early = await repo.get_by_natural_key(txid("early"), 0)
            assert early.status == FutureStatus.LOCKED
            assert early.unlocked_by is None

        await SyncOrchestrator(session_maker, chain, sleep=no_sleep).sync_to_tip()

        async with session_maker() as session:
            repo = FutureOutputRepository(session)
            early = await repo.get_by_natural_key(txid("early"), 0)
            assert early.status == FutureStatus.UNLOCKED
            assert early.unlocked_by == UnlockReason.CONFIRMATIONS
            assert [f.txid for f in await repo.find_locked_by_address("RHeir")] == [txid("late")]

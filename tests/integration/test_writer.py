"""
Integration tests for the idempotent writer.

Runs against an in-memory SQLite database.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from asset_indexer.models import (
    Asset,
    AssetTransfer,
    Block,
    FutureOutput,
    FutureStatus,
    Transaction,
    UnlockReason,
)
from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.services.indexer.lineage import derive_block
from asset_indexer.services.indexer.records import AssetInfo, AssetState
from asset_indexer.services.indexer.writer import IdempotentWriter
from asset_indexer.utils.exceptions import InvariantViolationError, MalformedBlockError
from chain_factory import (
    create_tx,
    future_tx,
    make_block,
    mint_tx,
    snapshot,
    transfer_tx,
    txid,
    update_tx,
)

GOLD_ID = txid("gold")
GOLD = AssetInfo(asset_id=GOLD_ID, name="GOLD", decimals=0, updatable=True)


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestIdempotentWriter:
    """Test upsert-by-natural-key writes."""

    @pytest.mark.asyncio
    async def test_write_block(self, session):
        """Block, transaction, asset and transfer rows are created."""
        block = make_block(1, [create_tx("gold", "GOLD"), mint_tx("mint", GOLD_ID, 50)])
        records = derive_block(block, AssetState())

        stats = await IdempotentWriter(session).write_block(records)
        await session.commit()

        assert stats.created == 5
        assert stats.rejected == 0
        assert await _count(session, Block) == 1
        assert await _count(session, Transaction) == 2
        assert await _count(session, AssetTransfer) == 1

        asset = await AssetRepository(session).get_by_asset_id(GOLD_ID)
        assert asset.total_supply == Decimal("50")
        assert asset.mint_count == 1
        assert asset.current_holder == "RMintTarget"

    @pytest.mark.asyncio
    async def test_rewrite_is_unchanged(self, session):
        """Writing the same records twice changes nothing."""
        block = make_block(1, [create_tx("gold", "GOLD"), mint_tx("mint", GOLD_ID, 50)])
        writer = IdempotentWriter(session)

        await writer.write_block(derive_block(block, AssetState()))
        await session.commit()
        before = await snapshot(session)

        stats = await writer.write_block(derive_block(block, AssetState()))
        await session.commit()

        assert stats.created == 0
        assert stats.updated == 0
        assert await snapshot(session) == before

    @pytest.mark.asyncio
    async def test_repeated_mint_not_double_counted(self, session):
        """Supply is recomputed from stored mints, not incremented."""
        writer = IdempotentWriter(session)
        await writer.write_block(derive_block(make_block(1, [create_tx("gold", "GOLD")]), AssetState()))
        mint_block = make_block(2, [mint_tx("mint", GOLD_ID, 50)])

        for _ in range(3):
            await writer.write_block(derive_block(mint_block, AssetState([GOLD])))
        await session.commit()

        asset = await AssetRepository(session).get_by_asset_id(GOLD_ID)
        assert asset.total_supply == Decimal("50")
        assert asset.mint_count == 1

    @pytest.mark.asyncio
    async def test_empty_block_hash_rejected(self, session):
        """A block without hash is rejected before anything is written."""
        records = derive_block(make_block(1, [create_tx("gold", "GOLD")], hash_=""), AssetState())

        with pytest.raises(MalformedBlockError):
            await IdempotentWriter(session).write_block(records)

        assert await _count(session, Block) == 0
        assert await _count(session, Asset) == 0

    @pytest.mark.asyncio
    async def test_missing_block_time_rejected(self, session):
        """A block without timestamp is rejected."""
        records = derive_block(make_block(1, [], time=0), AssetState())

        with pytest.raises(MalformedBlockError):
            await IdempotentWriter(session).write_block(records)

    @pytest.mark.asyncio
    async def test_invalid_transaction_rejected_without_partial_writes(self, session):
        """A transaction breaking an invariant leaves none of its records."""
        block = make_block(1, [create_tx("gold", "GOLD"), create_tx("silver", "SILVER")])
        records = derive_block(block, AssetState())
        records.transactions[1].transaction.block_hash = ""

        stats = await IdempotentWriter(session).write_block(records)
        await session.commit()

        assert stats.rejected == 1
        assert await _count(session, Transaction) == 1
        assert await AssetRepository(session).get_by_asset_id(txid("silver")) is None
        assert await AssetRepository(session).get_by_asset_id(GOLD_ID) is not None

    @pytest.mark.asyncio
    async def test_null_transfer_timestamp_rejected(self, session):
        """Transfers with a null timestamp are rejected with their transaction."""
        writer = IdempotentWriter(session)
        await writer.write_block(derive_block(make_block(1, [create_tx("gold", "GOLD")]), AssetState()))
        records = derive_block(make_block(2, [mint_tx("mint", GOLD_ID, 5)]), AssetState([GOLD]))
        records.transactions[0].transfers[0].timestamp = None

        stats = await writer.write_block(records)

        assert stats.rejected == 1
        assert await _count(session, AssetTransfer) == 0

    def test_validate_transaction(self):
        """Validation names the record and the broken invariant."""
        records = derive_block(make_block(1, [create_tx("gold", "GOLD")]), AssetState())
        item = records.transactions[0]
        item.transaction.timestamp = None

        with pytest.raises(InvariantViolationError) as exc_info:
            IdempotentWriter.validate_transaction(item)

        assert exc_info.value.record == "Transaction"
        assert "null timestamp" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_recreation_keeps_updated_fields(self, session):
        """Re-applying a creation does not undo a later update."""
        writer = IdempotentWriter(session)
        creation = make_block(1, [create_tx("gold", "GOLD", updatable=True)])
        await writer.write_block(derive_block(creation, AssetState()))
        await writer.write_block(
            derive_block(make_block(2, [update_tx("upd", GOLD_ID, referenceHash="QmNew")]), AssetState([GOLD]))
        )

        await writer.write_block(derive_block(creation, AssetState()))
        await session.commit()

        asset = await AssetRepository(session).get_by_asset_id(GOLD_ID)
        assert asset.reference_hash == "QmNew"
        assert asset.last_update_txid == txid("upd")
        assert asset.last_update_height == 2

    @pytest.mark.asyncio
    async def test_update_of_missing_asset(self, session):
        """The writer refuses updates of assets it never stored."""
        records = derive_block(
            make_block(2, [update_tx("upd", GOLD_ID, referenceHash="QmNew")]), AssetState([GOLD])
        )

        with pytest.raises(InvariantViolationError):
            await IdempotentWriter(session).apply_update(records.transactions[0].update)

    @pytest.mark.asyncio
    async def test_sentinel_rename_reaches_stored_records(self, session):
        """Resolving a sentinel parent renames the child's stored rows."""
        writer = IdempotentWriter(session)
        child = make_block(2, [create_tx("tower", "tower", is_root=False, root_id=GOLD_ID)])
        await writer.write_block(derive_block(child, AssetState()))
        child_id = txid("tower")
        move = make_block(
            3, [transfer_tx("move", "RSender", [("RTo", child_id, "UNKNOWN|tower", 1)])]
        )
        await writer.write_block(
            derive_block(move, AssetState([AssetInfo(asset_id=child_id, name="UNKNOWN|tower")]))
        )

        await writer.write_block(derive_block(child, AssetState([GOLD])))
        await session.commit()

        transfer = (await session.execute(select(AssetTransfer))).scalar_one()
        names = (
            await session.execute(
                select(Transaction.asset_name).where(Transaction.asset_id == child_id)
            )
        ).scalars().all()
        assert transfer.asset_name == "GOLD|tower"
        assert set(names) == {"GOLD|tower"}


class TestFutureOutputs:
    """Test future output writes and unlocking."""

    @staticmethod
    async def _write_lock(session, maturity: int, lock_time: int):
        outputs = [{"address": "RHeir", "value": "3"}]
        block = make_block(10, [future_tx("lock", "RSender", outputs, 0, maturity, lock_time)])
        writer = IdempotentWriter(session)
        await writer.write_block(derive_block(block, AssetState()))
        await session.commit()
        return writer, block

    @pytest.mark.asyncio
    async def test_future_written_once(self, session):
        """Rewriting a future transaction keeps one locked row."""
        writer, block = await self._write_lock(session, maturity=5, lock_time=-1)

        stats = await writer.write_block(derive_block(block, AssetState()))
        await session.commit()

        future = (await session.execute(select(FutureOutput))).scalar_one()
        assert stats.created == 0
        assert future.status == FutureStatus.LOCKED
        assert future.unlock_height == 15
        assert future.amount == Decimal("3")

    @pytest.mark.asyncio
    async def test_unlock_by_confirmations(self, session):
        """The output unlocks once the processed height reaches maturity."""
        writer, block = await self._write_lock(session, maturity=5, lock_time=-1)

        assert await writer.unlock_matured(14, block.time + timedelta(days=30)) == 0
        assert await writer.unlock_matured(15, block.time + timedelta(minutes=5)) == 1
        await session.commit()

        future = (await session.execute(select(FutureOutput))).scalar_one()
        assert future.status == FutureStatus.UNLOCKED
        assert future.unlocked_by == UnlockReason.CONFIRMATIONS
        assert future.unlocked_height == 15

    @pytest.mark.asyncio
    async def test_unlock_by_time(self, session):
        """The output unlocks once the processed block time passes lock time."""
        writer, block = await self._write_lock(session, maturity=-1, lock_time=3600)

        assert await writer.unlock_matured(1000, block.time + timedelta(seconds=3599)) == 0
        assert await writer.unlock_matured(1001, block.time + timedelta(seconds=3600)) == 1
        await session.commit()

        future = (await session.execute(select(FutureOutput))).scalar_one()
        assert future.unlocked_by == UnlockReason.TIME
        assert future.unlocked_height == 1001

    @pytest.mark.asyncio
    async def test_unlock_is_not_repeated(self, session):
        """An unlocked output is not unlocked again by later blocks."""
        writer, block = await self._write_lock(session, maturity=0, lock_time=-1)

        assert await writer.unlock_matured(10, block.time) == 1
        assert await writer.unlock_matured(11, block.time) == 0

    @pytest.mark.asyncio
    async def test_rewrite_keeps_unlock_status(self, session):
        """Re-applying the creating block does not relock an unlocked output."""
        writer, block = await self._write_lock(session, maturity=0, lock_time=-1)
        await writer.unlock_matured(10, block.time)
        await session.commit()

        await writer.write_block(derive_block(block, AssetState()))
        await session.commit()

        future = (await session.execute(select(FutureOutput))).scalar_one()
        assert future.status == FutureStatus.UNLOCKED

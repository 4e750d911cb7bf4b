"""
Idempotent Writer.

Persists derived records with upsert-by-natural-key semantics:
- Block by height
- Transaction by txid
- Asset by asset_id
- AssetTransfer by (txid, vout)
- FutureOutput by (txid, vout)

Upserts are select-then-assign through the ORM, so the same code runs on
PostgreSQL and SQLite. The writer never commits; the caller owns the
transaction boundary.
"""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.asset import Asset
from asset_indexer.models.asset_transfer import AssetTransfer
from asset_indexer.models.block import Block
from asset_indexer.models.enums import FutureStatus, UnlockReason
from asset_indexer.models.future_output import FutureOutput
from asset_indexer.models.transaction import Transaction
from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.repositories.asset_transfer_repository import (
    AssetTransferRepository,
)
from asset_indexer.repositories.block_repository import BlockRepository
from asset_indexer.repositories.future_output_repository import (
    FutureOutputRepository,
)
from asset_indexer.repositories.transaction_repository import (
    TransactionRepository,
)
from asset_indexer.services.indexer.records import (
    AssetRecord,
    AssetUpdateRecord,
    BlockRecord,
    BlockRecords,
    FutureOutputRecord,
    TransactionRecord,
    TransactionRecords,
    TransferRecord,
)
from asset_indexer.utils.exceptions import (
    InvariantViolationError,
    MalformedBlockError,
)

# Asset fields an update transaction may have changed after creation
MUTABLE_ASSET_FIELDS = ("updatable", "reference_hash", "owner", "max_mint_count")


class WriteOutcome(StrEnum):
    """Result of a single upsert."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class WriteStats:
    """Counters of one write_block call."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    rejected: int = 0

    def record(self, outcome: WriteOutcome) -> None:
        if outcome == WriteOutcome.CREATED:
            self.created += 1
        elif outcome == WriteOutcome.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1


def _normalized(value: Any) -> Any:
    # SQLite hands back naive datetimes for timezone-aware columns
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def assign(model: Any, values: dict[str, Any]) -> bool:
    """
    Assign values to a model, touching only attributes that differ.

    Args:
        model: ORM instance
        values: Attribute values

    Returns:
        True if any attribute changed
    """
    changed = False
    for key, value in values.items():
        if _normalized(getattr(model, key)) != _normalized(value):
            setattr(model, key, value)
            changed = True
    return changed


class IdempotentWriter:
    """
    Writes BlockRecords into the store.

    All records of a transaction are validated before any of them is
    written, so a rejected transaction leaves nothing behind.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize writer.

        Args:
            session: Database session (caller commits)
        """
        self.session = session
        self.blocks = BlockRepository(session)
        self.transactions = TransactionRepository(session)
        self.assets = AssetRepository(session)
        self.transfers = AssetTransferRepository(session)
        self.futures = FutureOutputRepository(session)

    # ====================================================================
    # VALIDATION
    # ====================================================================

    @staticmethod
    def validate_block(record: BlockRecord) -> None:
        """
        Check block invariants.

        Raises:
            MalformedBlockError: Empty hash or missing timestamp
        """
        if not record.hash:
            raise MalformedBlockError(record.height, "empty block hash")
        if record.timestamp is None:
            raise MalformedBlockError(record.height, "missing block timestamp")

    @staticmethod
    def validate_transaction(item: TransactionRecords) -> None:
        """
        Check invariants of every record derived from one transaction.

        Raises:
            InvariantViolationError: Empty block hash or null timestamp
        """
        tx = item.transaction
        _require("Transaction", tx.txid, tx.block_hash, tx.timestamp)

        for transfer in item.transfers:
            _require(
                "AssetTransfer",
                f"{transfer.txid}:{transfer.vout}",
                transfer.block_hash,
                transfer.timestamp,
            )

        if item.future:
            _require(
                "FutureOutput",
                f"{item.future.txid}:{item.future.vout}",
                item.future.block_hash,
                item.future.created_at_block,
            )

        if item.asset and item.asset.created_at_block is None:
            raise InvariantViolationError(
                "Asset", item.asset.asset_id, "null creation timestamp"
            )

    # ====================================================================
    # BLOCK
    # ====================================================================

    async def write_block(self, records: BlockRecords) -> WriteStats:
        """
        Write all records of a block.

        Args:
            records: Output of derive_block()

        Returns:
            Write counters

        Raises:
            MalformedBlockError: If the block itself breaks an invariant
        """
        try:
            self.validate_block(records.block)
        except MalformedBlockError as e:
            logger.error(f"[Writer] {e}")
            raise

        stats = WriteStats()
        stats.record(await self.upsert_block(records.block))

        touched: set[str] = set()
        for item in records.transactions:
            try:
                self.validate_transaction(item)
            except InvariantViolationError as e:
                stats.rejected += 1
                logger.error(f"[Writer] Rejected tx {item.transaction.txid}: {e}")
                continue

            for outcome in await self.write_transaction(item):
                stats.record(outcome)

            if item.asset:
                touched.add(item.asset.asset_id)
            touched.update(t.asset_id for t in item.transfers)

        await self.session.flush()
        for asset_id in sorted(touched):
            await self.refresh_asset_totals(asset_id)

        return stats

    async def upsert_block(self, record: BlockRecord) -> WriteOutcome:
        """Upsert a block by height."""
        values = asdict(record)
        values["transaction_count"] = record.transaction_count

        block = await self.blocks.get_by_height(record.height)
        if block is None:
            self.session.add(Block(**values))
            await self.session.flush()
            return WriteOutcome.CREATED

        return WriteOutcome.UPDATED if assign(block, values) else WriteOutcome.UNCHANGED

    # ====================================================================
    # TRANSACTION
    # ====================================================================

    async def write_transaction(self, item: TransactionRecords) -> list[WriteOutcome]:
        """
        Write the records of one (already validated) transaction.

        Returns:
            Outcome per written record
        """
        outcomes = [await self.upsert_transaction(item.transaction)]

        if item.asset:
            outcomes.append(await self.upsert_asset(item.asset))
        if item.update:
            outcomes.append(await self.apply_update(item.update))
        for transfer in item.transfers:
            outcomes.append(await self.upsert_transfer(transfer))
        if item.future:
            outcomes.append(await self.upsert_future(item.future))

        await self.session.flush()
        return outcomes

    async def upsert_transaction(self, record: TransactionRecord) -> WriteOutcome:
        """Upsert a transaction by txid."""
        values = asdict(record)

        tx = await self.transactions.get_by_txid(record.txid)
        if tx is None:
            self.session.add(Transaction(**values))
            return WriteOutcome.CREATED

        return WriteOutcome.UPDATED if assign(tx, values) else WriteOutcome.UNCHANGED

    # ====================================================================
    # ASSET
    # ====================================================================

    async def upsert_asset(self, record: AssetRecord) -> WriteOutcome:
        """
        Upsert an asset creation by asset_id.

        Mutable fields already changed by a later update are kept. A
        changed full name (a resolved sentinel parent) is carried over to
        the asset's stored transactions, transfers and future outputs.
        """
        values = asdict(record)

        asset = await self.assets.get_by_asset_id(record.asset_id)
        if asset is None:
            self.session.add(Asset(**values))
            return WriteOutcome.CREATED

        if asset.last_update_txid:
            for key in MUTABLE_ASSET_FIELDS:
                values.pop(key)

        previous_name = asset.name
        if not assign(asset, values):
            return WriteOutcome.UNCHANGED

        logger.debug(f"[Writer] Asset {record.asset_id} rewritten as {asset.name}")
        if asset.name != previous_name:
            await self.rename_asset(asset.asset_id, asset.name)
        return WriteOutcome.UPDATED

    async def rename_asset(self, asset_id: str, name: str) -> int:
        """
        Rewrite the denormalized name of an asset on every stored record.

        Args:
            asset_id: Asset id
            name: New full name

        Returns:
            Number of rewritten rows
        """
        renamed = await self.transfers.rename_asset(asset_id, name)
        renamed += await self.transactions.rename_asset(asset_id, name)
        renamed += await self.futures.rename_asset(asset_id, name)
        if renamed:
            logger.info(f"[Writer] Renamed {renamed} stored record(s) of {asset_id} to {name}")
        return renamed

    async def apply_update(self, record: AssetUpdateRecord) -> WriteOutcome:
        """
        Apply mutable-field changes to an existing asset.

        Raises:
            InvariantViolationError: If the asset does not exist
        """
        asset = await self.assets.get_by_asset_id(record.asset_id)
        if asset is None:
            raise InvariantViolationError(
                "Asset", record.asset_id, "update of an asset that does not exist"
            )

        values: dict[str, Any] = {
            "last_update_txid": record.txid,
            "last_update_height": record.block_height,
        }
        for key in MUTABLE_ASSET_FIELDS:
            value = getattr(record, key)
            if value is not None:
                values[key] = value

        return WriteOutcome.UPDATED if assign(asset, values) else WriteOutcome.UNCHANGED

    async def refresh_asset_totals(self, asset_id: str) -> None:
        """
        Recompute supply and counters of an asset from its stored transfers.

        Recomputing instead of incrementing keeps re-processed mints from
        being counted twice.
        """
        asset = await self.assets.get_by_asset_id(asset_id)
        if asset is None:
            return

        totals = await self.transfers.get_asset_totals(asset_id)
        assign(
            asset,
            {
                "total_supply": totals["minted"],
                "circulating_supply": totals["minted"],
                "mint_count": totals["mint_count"],
                "transfer_count": totals["transfer_count"],
                "current_holder": totals["latest_holder"],
            },
        )

    # ====================================================================
    # TRANSFER
    # ====================================================================

    async def upsert_transfer(self, record: TransferRecord) -> WriteOutcome:
        """Upsert an asset movement by (txid, vout)."""
        values = asdict(record)

        transfer = await self.transfers.get_by_natural_key(record.txid, record.vout)
        if transfer is None:
            self.session.add(AssetTransfer(**values))
            return WriteOutcome.CREATED

        return (
            WriteOutcome.UPDATED if assign(transfer, values) else WriteOutcome.UNCHANGED
        )

    # ====================================================================
    # FUTURE OUTPUTS
    # ====================================================================

    async def upsert_future(self, record: FutureOutputRecord) -> WriteOutcome:
        """
        Upsert a future output by (txid, vout).

        Only lock parameters are written; the unlock status is owned by
        unlock_matured().
        """
        values = asdict(record)

        future = await self.futures.get_by_natural_key(record.txid, record.vout)
        if future is None:
            self.session.add(FutureOutput(status=FutureStatus.LOCKED, **values))
            return WriteOutcome.CREATED

        return WriteOutcome.UPDATED if assign(future, values) else WriteOutcome.UNCHANGED

    async def unlock_matured(self, height: int, block_time: datetime) -> int:
        """
        Unlock future outputs whose condition the block reaches.

        Args:
            height: Height of the processed block
            block_time: Timestamp of the processed block

        Returns:
            Number of unlocked outputs
        """
        await self.session.flush()

        unlocked = 0
        for future in await self.futures.find_matured(height, block_time):
            by_height = future.unlock_height is not None and future.unlock_height <= height
            future.status = FutureStatus.UNLOCKED
            future.unlocked_by = UnlockReason.CONFIRMATIONS if by_height else UnlockReason.TIME
            future.unlocked_height = height
            future.unlocked_at_block = block_time
            unlocked += 1
            logger.info(
                f"[Writer] Future unlocked: {future.txid}:{future.vout} by {future.unlocked_by}"
            )

        if unlocked:
            logger.info(f"[Writer] Unlocked {unlocked} matured future(s) at height {height}")
        return unlocked


def _require(record: str, key: str, block_hash: str | None, timestamp: Any) -> None:
    if not block_hash:
        raise InvariantViolationError(record, key, "empty block hash")
    if timestamp is None:
        raise InvariantViolationError(record, key, "null timestamp")

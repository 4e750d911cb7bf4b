"""
Block pipeline.

The single path from a fetched block to stored records, shared by the
sync orchestrator and the backfill tool:

    load asset snapshot -> derive_block() -> IdempotentWriter -> unlock matured futures

The pipeline never commits.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.repositories.asset_repository import AssetRepository
from asset_indexer.services.chain.payloads import ChainBlock
from asset_indexer.services.indexer.lineage import derive_block
from asset_indexer.services.indexer.records import (
    AssetInfo,
    AssetState,
    BlockRecords,
)
from asset_indexer.services.indexer.writer import IdempotentWriter, WriteStats


@dataclass
class BlockResult:
    """Outcome of processing one block."""

    height: int
    records: BlockRecords
    stats: WriteStats
    unlocked: int = 0

    @property
    def items(self) -> int:
        """Number of asset-bearing transactions stored."""
        return len(self.records.transactions) - self.stats.rejected


def referenced_assets(block: ChainBlock) -> tuple[set[str], set[str]]:
    """
    Collect asset ids and names a block refers to.

    Args:
        block: Parsed block

    Returns:
        (asset_ids, names) needed to resolve parents, mints, updates
        and transfers of the block
    """
    ids: set[str] = set()
    names: set[str] = set()

    for tx in block.transactions:
        if tx.new_asset and tx.new_asset.root_id:
            ids.add(tx.new_asset.root_id)
        for payload in (tx.mint_asset, tx.update_asset):
            if payload is None:
                continue
            if payload.asset_id:
                ids.add(payload.asset_id)
            if payload.asset_name:
                names.add(payload.asset_name)
        for out in tx.outputs:
            if out.asset is None:
                continue
            if out.asset.asset_id:
                ids.add(out.asset.asset_id)
            if out.asset.name:
                names.add(out.asset.name)

    return ids, names


class BlockPipeline:
    """Derives and writes blocks through one shared code path."""

    async def load_state(self, session: AsyncSession, block: ChainBlock) -> AssetState:
        """
        Load the assets a block refers to.

        Args:
            session: Database session
            block: Parsed block

        Returns:
            Snapshot for derive_block()
        """
        ids, names = referenced_assets(block)
        if not ids and not names:
            return AssetState()

        assets = await AssetRepository(session).get_many(asset_ids=ids, names=names)
        return AssetState([AssetInfo.from_model(asset) for asset in assets])

    async def process(self, session: AsyncSession, block: ChainBlock) -> BlockResult:
        """
        Derive and write one block, then unlock the future outputs that
        matured at it (no commit).

        Args:
            session: Database session owned by the caller
            block: Parsed block

        Returns:
            Derived records and write counters

        Raises:
            MalformedBlockError: If the block breaks a storage invariant
        """
        state = await self.load_state(session, block)
        records = derive_block(block, state)
        writer = IdempotentWriter(session)
        stats = await writer.write_block(records)
        unlocked = await writer.unlock_matured(block.height, block.time)

        if stats.rejected:
            logger.error(
                f"[Pipeline] Block {block.height}: {stats.rejected} transaction(s) "
                f"rejected by invariant checks"
            )

        return BlockResult(
            height=block.height, records=records, stats=stats, unlocked=unlocked
        )

"""
Transaction repository.

Data access layer for indexed asset transactions.
"""

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.transaction import Transaction
from asset_indexer.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for transactions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Transaction, session)

    async def get_by_txid(self, txid: str) -> Transaction | None:
        """Get transaction by id."""
        return await self.get_by(txid=txid)

    async def find_by_asset(self, asset_id: str, limit: int = 100) -> list[Transaction]:
        """Get transactions touching an asset, newest first."""
        query = (
            select(Transaction)
            .where(Transaction.asset_id == asset_id)
            .order_by(Transaction.block_height.desc(), Transaction.tx_index.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_missing_block_hash(self, limit: int | None = None) -> list[Transaction]:
        """
        Get transactions stored without a block hash.

        Rows like these predate the writer's invariant checks.

        Args:
            limit: Max results (None for all)

        Returns:
            List of transactions ordered by height
        """
        query = (
            select(Transaction)
            .where(or_(Transaction.block_hash == "", Transaction.block_hash.is_(None)))
            .order_by(Transaction.block_height.asc(), Transaction.tx_index.asc())
        )
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_from_height(self, height: int) -> int:
        """Delete transactions at or above a height."""
        result = await self.session.execute(
            delete(Transaction).where(Transaction.block_height >= height)
        )
        return result.rowcount or 0

    async def rename_asset(self, asset_id: str, name: str) -> int:
        """Rewrite the denormalized asset name of an asset's transactions."""
        result = await self.session.execute(
            update(Transaction)
            .where(Transaction.asset_id == asset_id, Transaction.asset_name != name)
            .values(asset_name=name)
        )
        return result.rowcount or 0

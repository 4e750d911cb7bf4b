"""
Block repository.

Data access layer for indexed blocks.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.block import Block
from asset_indexer.repositories.base import BaseRepository


class BlockRepository(BaseRepository[Block]):
    """Repository for blocks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Block, session)

    async def get_by_height(self, height: int) -> Block | None:
        """Get block by height."""
        return await self.get_by(height=height)

    async def get_by_hash(self, block_hash: str) -> Block | None:
        """Get block by hash."""
        return await self.get_by(hash=block_hash)

    async def get_latest_height(self) -> int:
        """
        Get the highest indexed height.

        Returns:
            Latest height or 0
        """
        result = await self.session.execute(select(func.max(Block.height)))
        height = result.scalar()
        return height if height else 0

    async def delete_from_height(self, height: int) -> int:
        """
        Delete blocks at or above a height.

        Args:
            height: First height to delete

        Returns:
            Number of deleted rows
        """
        result = await self.session.execute(delete(Block).where(Block.height >= height))
        return result.rowcount or 0

"""
Future Output repository.

Data access layer for outputs locked by future transactions.
"""

from datetime import datetime

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.enums import FutureStatus
from asset_indexer.models.future_output import FutureOutput
from asset_indexer.repositories.base import BaseRepository


class FutureOutputRepository(BaseRepository[FutureOutput]):
    """Repository for future outputs."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(FutureOutput, session)

    async def get_by_natural_key(self, txid: str, vout: int) -> FutureOutput | None:
        """Get future output by (txid, vout)."""
        return await self.get_by(txid=txid, vout=vout)

    async def find_locked_by_address(
        self, address: str, limit: int = 100
    ) -> list[FutureOutput]:
        """
        Get outputs still locked for a recipient, newest first.

        Args:
            address: Recipient address
            limit: Max results

        Returns:
            List of locked future outputs
        """
        query = (
            select(FutureOutput)
            .where(
                FutureOutput.recipient == address,
                FutureOutput.status == FutureStatus.LOCKED,
            )
            .order_by(FutureOutput.created_height.desc(), FutureOutput.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_locked_by_asset(
        self, asset_id: str, limit: int = 100
    ) -> list[FutureOutput]:
        """Get outputs of an asset still locked, newest first."""
        query = (
            select(FutureOutput)
            .where(
                FutureOutput.asset_id == asset_id,
                FutureOutput.status == FutureStatus.LOCKED,
            )
            .order_by(FutureOutput.created_height.desc(), FutureOutput.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_matured(self, height: int, block_time: datetime) -> list[FutureOutput]:
        """
        Get locked outputs whose height or time condition is reached.

        Args:
            height: Height of the processed block
            block_time: Timestamp of the processed block

        Returns:
            Matured outputs in creation order
        """
        query = (
            select(FutureOutput)
            .where(
                FutureOutput.status == FutureStatus.LOCKED,
                or_(
                    and_(
                        FutureOutput.unlock_height.is_not(None),
                        FutureOutput.unlock_height <= height,
                    ),
                    and_(
                        FutureOutput.unlock_time.is_not(None),
                        FutureOutput.unlock_time <= block_time,
                    ),
                ),
            )
            .order_by(FutureOutput.created_height, FutureOutput.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_from_height(self, height: int) -> int:
        """Delete outputs created at or above a height."""
        result = await self.session.execute(
            delete(FutureOutput).where(FutureOutput.created_height >= height)
        )
        return result.rowcount or 0

    async def relock_from_height(self, height: int) -> int:
        """
        Lock again the outputs that were unlocked at or above a height.

        Returns:
            Number of relocked rows
        """
        result = await self.session.execute(
            update(FutureOutput)
            .where(
                FutureOutput.status == FutureStatus.UNLOCKED,
                FutureOutput.unlocked_height >= height,
            )
            .values(
                status=FutureStatus.LOCKED,
                unlocked_by=None,
                unlocked_height=None,
                unlocked_at_block=None,
            )
        )
        return result.rowcount or 0

    async def rename_asset(self, asset_id: str, name: str) -> int:
        """Rewrite the denormalized asset name of an asset's future outputs."""
        result = await self.session.execute(
            update(FutureOutput)
            .where(FutureOutput.asset_id == asset_id, FutureOutput.asset_name != name)
            .values(asset_name=name)
        )
        return result.rowcount or 0

"""
Asset Transfer repository.

Data access layer for asset movements.
"""

from decimal import Decimal

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.asset_transfer import AssetTransfer
from asset_indexer.models.enums import TransferType
from asset_indexer.repositories.base import BaseRepository


class AssetTransferRepository(BaseRepository[AssetTransfer]):
    """Repository for asset transfers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(AssetTransfer, session)

    async def get_by_natural_key(
        self, txid: str, vout: int
    ) -> AssetTransfer | None:
        """
        Get transfer by (txid, vout).

        Args:
            txid: Transaction id
            vout: Output index

        Returns:
            Transfer or None
        """
        return await self.get_by(txid=txid, vout=vout)

    async def find_by_asset(
        self,
        asset_id: str,
        transfer_type: str | None = None,
        limit: int = 100,
    ) -> list[AssetTransfer]:
        """
        Get movements of an asset, newest first.

        Args:
            asset_id: Asset id
            transfer_type: Filter by type (mint, transfer)
            limit: Max results

        Returns:
            List of transfers
        """
        conditions = [AssetTransfer.asset_id == asset_id]
        if transfer_type:
            conditions.append(AssetTransfer.transfer_type == transfer_type)

        query = (
            select(AssetTransfer)
            .where(and_(*conditions))
            .order_by(
                AssetTransfer.block_height.desc(),
                AssetTransfer.tx_index.desc(),
                AssetTransfer.vout.desc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_by_address(
        self, address: str, limit: int = 100
    ) -> list[AssetTransfer]:
        """
        Get movements involving an address, newest first.

        Args:
            address: Sender or recipient address
            limit: Max results

        Returns:
            List of transfers
        """
        query = (
            select(AssetTransfer)
            .where(
                or_(
                    AssetTransfer.from_address == address,
                    AssetTransfer.to_address == address,
                )
            )
            .order_by(AssetTransfer.block_height.desc(), AssetTransfer.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_asset_totals(self, asset_id: str) -> dict:
        """
        Aggregate supply and counters of an asset from its movements.

        Args:
            asset_id: Asset id

        Returns:
            Dict with minted (Decimal), mint_count, transfer_count and
            latest_holder (recipient of the latest movement or None)
        """
        minted_result = await self.session.execute(
            select(
                func.coalesce(func.sum(AssetTransfer.amount), 0),
                func.count(AssetTransfer.id),
            ).where(
                AssetTransfer.asset_id == asset_id,
                AssetTransfer.transfer_type == TransferType.MINT,
            )
        )
        minted, mint_count = minted_result.one()

        transfer_count = await self.count(
            asset_id=asset_id, transfer_type=TransferType.TRANSFER
        )

        latest_result = await self.session.execute(
            select(AssetTransfer.to_address)
            .where(AssetTransfer.asset_id == asset_id)
            .order_by(
                AssetTransfer.block_height.desc(),
                AssetTransfer.tx_index.desc(),
                AssetTransfer.vout.desc(),
            )
            .limit(1)
        )

        return {
            "minted": Decimal(str(minted)) if minted else Decimal("0"),
            "mint_count": mint_count or 0,
            "transfer_count": transfer_count,
            "latest_holder": latest_result.scalar(),
        }

    async def delete_range(self, from_height: int, to_height: int | None = None) -> int:
        """
        Delete movements recorded in a height range.

        Args:
            from_height: First height (inclusive)
            to_height: Last height (inclusive, None for open-ended)

        Returns:
            Number of deleted rows
        """
        stmt = delete(AssetTransfer).where(
            *_height_range(from_height, to_height)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def affected_asset_ids(
        self, from_height: int, to_height: int | None = None
    ) -> list[str]:
        """Get ids of assets with movements in a height range."""
        result = await self.session.execute(
            select(AssetTransfer.asset_id)
            .where(*_height_range(from_height, to_height))
            .distinct()
        )
        return list(result.scalars().all())

    async def rename_asset(self, asset_id: str, name: str) -> int:
        """Rewrite the denormalized asset name of an asset's movements."""
        result = await self.session.execute(
            update(AssetTransfer)
            .where(AssetTransfer.asset_id == asset_id, AssetTransfer.asset_name != name)
            .values(asset_name=name)
        )
        return result.rowcount or 0


def _height_range(from_height: int, to_height: int | None) -> list:
    conditions = [AssetTransfer.block_height >= from_height]
    if to_height is not None:
        conditions.append(AssetTransfer.block_height <= to_height)
    return conditions

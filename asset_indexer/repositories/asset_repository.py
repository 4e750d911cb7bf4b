"""
Asset repository.

Data access layer for the asset registry.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.asset import Asset
from asset_indexer.repositories.base import BaseRepository


class AssetRepository(BaseRepository[Asset]):
    """Repository for assets."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Asset, session)

    async def get_by_asset_id(self, asset_id: str) -> Asset | None:
        """
        Get asset by creating transaction id.

        Args:
            asset_id: Asset id (creating txid)

        Returns:
            Asset or None
        """
        return await self.get_by(asset_id=asset_id)

    async def get_by_name(self, name: str) -> Asset | None:
        """
        Get asset by full name.

        Sentinel-named sub-assets may collide on name, so the earliest
        created match wins.

        Args:
            name: Full asset name (PARENT|child for sub-assets)

        Returns:
            Asset or None
        """
        query = (
            select(Asset)
            .where(Asset.name == name)
            .order_by(Asset.created_block_height.asc(), Asset.id.asc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_many(
        self,
        asset_ids: Iterable[str] = (),
        names: Iterable[str] = (),
    ) -> list[Asset]:
        """
        Load assets matching any of the given ids or names.

        Args:
            asset_ids: Asset ids to load
            names: Full names to load

        Returns:
            Matching assets ordered by creation height
        """
        ids = sorted(set(asset_ids))
        name_list = sorted(set(names))
        found: dict[int, Asset] = {}

        if ids:
            result = await self.session.execute(
                select(Asset).where(Asset.asset_id.in_(ids))
            )
            for asset in result.scalars().all():
                found[asset.id] = asset

        if name_list:
            result = await self.session.execute(
                select(Asset).where(Asset.name.in_(name_list))
            )
            for asset in result.scalars().all():
                found[asset.id] = asset

        return sorted(
            found.values(),
            key=lambda a: (a.created_block_height, a.id),
        )

    async def find_children(self, parent_asset_id: str) -> list[Asset]:
        """
        Get sub-assets of a parent.

        Args:
            parent_asset_id: Asset id of the root asset

        Returns:
            Sub-assets ordered by name
        """
        query = (
            select(Asset)
            .where(
                Asset.is_sub_asset.is_(True),
                Asset.parent_asset_id == parent_asset_id,
            )
            .order_by(Asset.name.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_sub_assets(self) -> list[Asset]:
        """Get all sub-assets ordered by creation height."""
        query = (
            select(Asset)
            .where(Asset.is_sub_asset.is_(True))
            .order_by(Asset.created_block_height.asc(), Asset.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def find_pending_parent(self) -> list[Asset]:
        """
        Get sub-assets still waiting for their parent.

        Returns:
            Sentinel-linked sub-assets ordered by creation height
        """
        query = (
            select(Asset)
            .where(Asset.parent_pending.is_(True))
            .order_by(Asset.created_block_height.asc(), Asset.id.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

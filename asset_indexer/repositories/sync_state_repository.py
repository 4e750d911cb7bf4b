"""
Sync State repository.

Data access layer for sync stream state.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from asset_indexer.models.enums import SyncStatus
from asset_indexer.models.sync_state import SyncState
from asset_indexer.repositories.base import BaseRepository


class SyncStateRepository(BaseRepository[SyncState]):
    """Repository for sync state rows."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(SyncState, session)

    async def get_by_stream(self, stream: str) -> SyncState | None:
        """Get sync state of a stream."""
        return await self.get_by(stream=stream)

    async def get_or_create(self, stream: str, start_height: int = 0) -> SyncState:
        """
        Get or create sync state for a stream.

        Args:
            stream: Stream name
            start_height: Watermark for a freshly created state

        Returns:
            Existing or new (flushed) sync state
        """
        state = await self.get_by_stream(stream)
        if state:
            return state

        state = SyncState(
            stream=stream,
            current_height=start_height,
            start_height=start_height,
            target_height=0,
            status=SyncStatus.NOT_STARTED,
            blocks_processed=0,
            items_processed=0,
            average_block_ms=0.0,
            error_count=0,
        )
        self.session.add(state)
        await self.session.flush()
        return state

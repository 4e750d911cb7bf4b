"""
Sync State model.

Tracks the synchronization state of block ingestion.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base


class SyncState(Base):
    """
    Tracks sync progress of one stream.

    Used to:
    - Know which height is durably committed (watermark)
    - Resume sync after restart
    - Expose daemon status and diagnostics
    """

    __tablename__ = "sync_state"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    stream: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )  # blocks

    # Heights
    current_height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0, index=True
    )
    target_height: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    start_height: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="not_started", index=True
    )  # not_started, syncing, synced, error, paused

    # Statistics
    blocks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_block_ms: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Error tracking
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

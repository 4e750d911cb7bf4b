"""
Block model.

One row per indexed chain height.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base
from asset_indexer.models.types import CoinType


class Block(Base):
    """
    Indexed block header.

    Natural key is the height; the hash is unique as well. Rewriting the
    same height converges to the same row.
    """

    __tablename__ = "blocks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, unique=True, index=True
    )
    hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    previous_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )  # null for genesis
    merkle_root: Mapped[str | None] = mapped_column(String(64), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    transaction_ids: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )

    # Coinbase summary
    miner: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reward: Mapped[Decimal] = mapped_column(
        CoinType, nullable=False, default=Decimal("0")
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

    def __repr__(self) -> str:
        """String representation."""
        return f"<Block(height={self.height}, hash={self.hash[:16]}...)>"

"""
Asset Transfer model.

One row per asset movement (mint or transfer output).
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base
from asset_indexer.models.enums import TransferType
from asset_indexer.models.types import AmountType


class AssetTransfer(Base):
    """
    Asset movement.

    Natural key is (txid, vout). Amounts are stored in display units;
    the raw smallest-unit integer is kept alongside as text.
    """

    __tablename__ = "asset_transfers"
    __table_args__ = (
        UniqueConstraint("txid", "vout", name="uq_asset_transfer_txid_vout"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Natural key
    txid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vout: Mapped[int] = mapped_column(Integer, nullable=False)

    # Asset
    asset_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    asset_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    transfer_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # mint, transfer

    # Movement
    from_address: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )  # null for mints
    to_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(AmountType, nullable=False)
    amount_raw: Mapped[str] = mapped_column(String(100), nullable=False)

    # Block context
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    block_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    tx_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
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
        return (
            f"<AssetTransfer(txid={self.txid[:16]}..., vout={self.vout}, "
            f"asset={self.asset_name}, amount={self.amount}, type={self.transfer_type})>"
        )

    @property
    def is_mint(self) -> bool:
        """Check if movement is a mint."""
        return self.transfer_type == TransferType.MINT

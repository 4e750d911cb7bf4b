"""
Transaction model.

Stores asset-bearing transactions with their block context.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base
from asset_indexer.models.types import AmountType, CoinType


class Transaction(Base):
    """
    Indexed asset transaction.

    Only transactions that produced a derived record get a row; the
    enclosing block keeps the full id list. Block hash and timestamp
    are always present.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identification
    txid: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    block_height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    block_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    tx_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    # Kind
    tx_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # standard, asset_create, asset_mint, asset_transfer, asset_update
    type_code: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fee: Mapped[Decimal] = mapped_column(
        CoinType, nullable=False, default=Decimal("0")
    )

    # Asset summary (first asset movement of the transaction)
    asset_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    asset_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(AmountType, nullable=True)
    from_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    to_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    inputs: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    outputs: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

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
            f"<Transaction(txid={self.txid[:16]}..., "
            f"type={self.tx_type}, height={self.block_height})>"
        )

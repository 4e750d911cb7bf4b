"""
Asset model.

Registry of assets keyed by the id of their creating transaction.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base
from asset_indexer.models.types import AmountType


class Asset(Base):
    """
    Asset registry entry.

    Hierarchy:
    - Root assets: is_root=True, is_sub_asset=False, no parent fields
    - Sub-assets: name is PARENT|child, parent_asset_id references the
      root's asset_id and parent_asset_name is upper-cased
    - Sub-assets created before their parent carry the UNKNOWN| prefix
      and parent_pending=True until a backfill relinks them

    Supply and counters are recomputed from stored transfers.
    """

    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Identification
    asset_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )  # creating txid
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    asset_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # fungible, non-fungible

    # Creation context
    created_txid: Mapped[str] = mapped_column(String(64), nullable=False)
    created_block_height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    created_at_block: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    creator: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Properties
    is_root: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_unique: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_mint_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Mutable through update transactions
    updatable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reference_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    owner: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    last_update_txid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_update_height: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Supply (display units)
    total_supply: Mapped[Decimal] = mapped_column(
        AmountType, nullable=False, default=Decimal("0")
    )
    circulating_supply: Mapped[Decimal] = mapped_column(
        AmountType, nullable=False, default=Decimal("0")
    )
    mint_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transfer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_holder: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )

    # Hierarchy
    is_sub_asset: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    root_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )  # declared parent reference from the creation payload
    parent_asset_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    parent_asset_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_asset_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_pending: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
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
            f"<Asset(asset_id={self.asset_id[:16]}..., name={self.name}, "
            f"sub_asset={self.is_sub_asset})>"
        )

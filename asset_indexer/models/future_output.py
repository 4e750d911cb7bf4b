"""
Future Output model.

Outputs locked by future transactions (type 7) until a block height or a
point in time is reached.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from asset_indexer.models.base import Base
from asset_indexer.models.enums import FutureStatus
from asset_indexer.models.types import AmountType


class FutureOutput(Base):
    """
    Locked output of a future transaction.

    Natural key is (txid, vout). The output unlocks at unlock_height or
    at unlock_time, whichever comes first; a None condition is disabled.
    Unlocking is judged against the processed block, never wall-clock
    time, so re-processing a block reaches the same status.
    """

    __tablename__ = "future_outputs"
    __table_args__ = (
        UniqueConstraint("txid", "vout", name="uq_future_output_txid_vout"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Natural key
    txid: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vout: Mapped[int] = mapped_column(Integer, nullable=False)

    # What is locked
    future_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # native, asset
    recipient: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal | None] = mapped_column(AmountType, nullable=True)
    amount_raw: Mapped[str] = mapped_column(String(100), nullable=False)
    asset_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    asset_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Lock parameters
    maturity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lock_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updatable_by_destination: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Creation
    created_height: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    block_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at_block: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Unlock conditions
    unlock_height: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, index=True
    )
    unlock_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FutureStatus.LOCKED, index=True
    )
    unlocked_by: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # confirmations, time
    unlocked_height: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    unlocked_at_block: Mapped[datetime | None] = mapped_column(
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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<FutureOutput(txid={self.txid[:16]}..., vout={self.vout}, "
            f"type={self.future_type}, status={self.status})>"
        )

    @property
    def is_locked(self) -> bool:
        """Check if output is still locked."""
        return self.status == FutureStatus.LOCKED

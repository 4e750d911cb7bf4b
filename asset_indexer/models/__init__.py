"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from asset_indexer.models.asset import Asset
from asset_indexer.models.asset_transfer import AssetTransfer
from asset_indexer.models.base import Base
from asset_indexer.models.block import Block
from asset_indexer.models.enums import (
    AssetType,
    FutureStatus,
    FutureType,
    SyncStatus,
    TransactionKind,
    TransferType,
    UnlockReason,
)
from asset_indexer.models.future_output import FutureOutput
from asset_indexer.models.sync_state import SyncState
from asset_indexer.models.transaction import Transaction

__all__ = [
    "Asset",
    "AssetTransfer",
    "AssetType",
    "Base",
    "Block",
    "FutureOutput",
    "FutureStatus",
    "FutureType",
    "SyncState",
    "SyncStatus",
    "Transaction",
    "TransactionKind",
    "TransferType",
    "UnlockReason",
]

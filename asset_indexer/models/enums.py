"""
Enumerations shared by models and services.
"""

from enum import StrEnum


class TransactionKind(StrEnum):
    """Derived kind of an indexed transaction (standard transactions are not stored)."""

    ASSET_CREATE = "asset_create"
    ASSET_MINT = "asset_mint"
    ASSET_TRANSFER = "asset_transfer"
    ASSET_UPDATE = "asset_update"
    FUTURE_LOCK = "future_lock"


class TransferType(StrEnum):
    """Kind of asset movement."""

    MINT = "mint"
    TRANSFER = "transfer"


class FutureType(StrEnum):
    """What a future transaction locks."""

    NATIVE = "native"
    ASSET = "asset"


class FutureStatus(StrEnum):
    """Lock status of a future output."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"


class UnlockReason(StrEnum):
    """Condition that released a future output."""

    CONFIRMATIONS = "confirmations"
    TIME = "time"


class AssetType(StrEnum):
    """Fungibility of an asset."""

    FUNGIBLE = "fungible"
    NON_FUNGIBLE = "non-fungible"


class SyncStatus(StrEnum):
    """Status of a sync stream."""

    NOT_STARTED = "not_started"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"
    PAUSED = "paused"

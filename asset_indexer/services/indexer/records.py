"""
Derived record types.

Plain dataclasses produced by the lineage processor and consumed by the
writer, plus the asset state snapshot the processor resolves against.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from asset_indexer.models.asset import Asset
from asset_indexer.models.enums import TransferType


@dataclass
class BlockRecord:
    """Block header to store."""

    height: int
    hash: str
    timestamp: datetime | None
    previous_hash: str | None = None
    merkle_root: str | None = None
    size: int = 0
    transaction_ids: list[str] = field(default_factory=list)
    miner: str | None = None
    reward: Decimal = Decimal("0")

    @property
    def transaction_count(self) -> int:
        return len(self.transaction_ids)


@dataclass
class TransactionRecord:
    """Asset-bearing transaction to store."""

    txid: str
    block_height: int
    block_hash: str
    tx_index: int
    timestamp: datetime | None
    tx_type: str
    type_code: int
    size: int = 0
    asset_id: str | None = None
    asset_name: str | None = None
    amount: Decimal | None = None
    from_address: str | None = None
    to_address: str | None = None
    inputs: list[dict] = field(default_factory=list)
    outputs: list[dict] = field(default_factory=list)


@dataclass
class AssetRecord:
    """Asset creation to store."""

    asset_id: str
    name: str
    asset_type: str
    created_txid: str
    created_block_height: int
    created_at_block: datetime | None
    creator: str | None
    is_root: bool
    is_unique: bool
    decimals: int
    max_mint_count: int
    updatable: bool
    reference_hash: str | None
    owner: str | None
    is_sub_asset: bool = False
    root_id: str | None = None
    parent_asset_id: str | None = None
    parent_asset_name: str | None = None
    sub_asset_name: str | None = None
    parent_pending: bool = False


@dataclass
class AssetUpdateRecord:
    """Mutable-field change of an existing asset. None means unchanged."""

    asset_id: str
    txid: str
    block_height: int
    updatable: bool | None = None
    reference_hash: str | None = None
    owner: str | None = None
    max_mint_count: int | None = None


@dataclass
class TransferRecord:
    """Asset movement to store (mint or transfer)."""

    txid: str
    vout: int
    asset_id: str
    asset_name: str
    transfer_type: str
    from_address: str | None
    to_address: str
    amount: Decimal
    amount_raw: str
    block_height: int
    block_hash: str
    tx_index: int
    timestamp: datetime | None

    @property
    def is_mint(self) -> bool:
        return self.transfer_type == TransferType.MINT


@dataclass
class FutureOutputRecord:
    """
    Output locked by a future transaction.

    unlock_height / unlock_time are None when that condition is disabled.
    amount is in display units and None for an asset that could not be
    resolved; amount_raw is always in smallest units.
    """

    txid: str
    vout: int
    future_type: str
    recipient: str
    amount: Decimal | None
    amount_raw: str
    asset_id: str | None
    asset_name: str | None
    maturity: int
    lock_time: int
    updatable_by_destination: bool
    created_height: int
    block_hash: str
    created_at_block: datetime | None
    unlock_height: int | None
    unlock_time: datetime | None


@dataclass
class TransactionRecords:
    """Everything derived from one transaction; written all or nothing."""

    transaction: TransactionRecord
    asset: AssetRecord | None = None
    update: AssetUpdateRecord | None = None
    transfers: list[TransferRecord] = field(default_factory=list)
    future: FutureOutputRecord | None = None


@dataclass
class BlockRecords:
    """Everything derived from one block."""

    block: BlockRecord
    transactions: list[TransactionRecords] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: int = 0
    errors: int = 0

    @property
    def transfer_count(self) -> int:
        return sum(
            1
            for item in self.transactions
            for transfer in item.transfers
            if not transfer.is_mint
        )

    @property
    def mint_count(self) -> int:
        return sum(
            1
            for item in self.transactions
            for transfer in item.transfers
            if transfer.is_mint
        )

    @property
    def future_count(self) -> int:
        return sum(1 for item in self.transactions if item.future)


# ========================================================================
# ASSET STATE
# ========================================================================


@dataclass
class AssetInfo:
    """What the processor needs to know about an existing asset."""

    asset_id: str
    name: str
    decimals: int = 0
    is_root: bool = True
    is_sub_asset: bool = False
    updatable: bool = False

    @classmethod
    def from_model(cls, asset: Asset) -> "AssetInfo":
        return cls(
            asset_id=asset.asset_id,
            name=asset.name,
            decimals=asset.decimals,
            is_root=asset.is_root,
            is_sub_asset=asset.is_sub_asset,
            updatable=asset.updatable,
        )


class AssetState:
    """
    Snapshot of known assets, indexed by id and by full name.

    The processor works on a copy so the caller's snapshot is never
    mutated by a derivation.
    """

    def __init__(self, assets: list[AssetInfo] | None = None) -> None:
        self._by_id: dict[str, AssetInfo] = {}
        self._by_name: dict[str, AssetInfo] = {}
        for info in assets or []:
            self.add(info)

    def add(self, info: AssetInfo) -> None:
        """Register an asset (first registration of a name wins the name)."""
        self._by_id[info.asset_id] = info
        self._by_name.setdefault(info.name, info)

    def get(self, asset_id: str | None) -> AssetInfo | None:
        if not asset_id:
            return None
        return self._by_id.get(asset_id)

    def get_by_name(self, name: str | None) -> AssetInfo | None:
        if not name:
            return None
        return self._by_name.get(name)

    def resolve(self, asset_id: str | None, name: str | None) -> AssetInfo | None:
        """Resolve by id first, then by full name."""
        return self.get(asset_id) or self.get_by_name(name)

    def set_updatable(self, asset_id: str, updatable: bool) -> None:
        info = self._by_id.get(asset_id)
        if info:
            replaced = replace(info, updatable=updatable)
            self._by_id[asset_id] = replaced
            if self._by_name.get(info.name) is info:
                self._by_name[info.name] = replaced

    def copy(self) -> "AssetState":
        clone = AssetState()
        clone._by_id = dict(self._by_id)
        clone._by_name = dict(self._by_name)
        return clone

    def __len__(self) -> int:
        return len(self._by_id)

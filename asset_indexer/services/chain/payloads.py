"""
Chain payload types and parsers.

Turns loosely-typed node responses into dataclasses the classifier and
lineage processor can rely on. Two input shapes are accepted:

- the raw node shape returned by getblock with verbosity 2
  (vin/vout/scriptPubKey, newAssetTx/NewAssetTx, mintAssetTx/MintAssetTx,
  updateAssetTx/UpdateAssetTx, futureTx/FutureTx, previousblockhash, tx)
- the normalized shape (inputs/outputs with address and asset,
  transactions, parentHash)

Parsers never raise on missing optional fields; they leave them as None
so the layers above decide what is fatal.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from asset_indexer.config.constants import ASSET_TRANSFER_SCRIPT_TYPE
from asset_indexer.utils.datetime_utils import from_block_time

# Output asset ids may carry a vout index or a unique-asset range suffix:
# "<txid>[0]", "<txid>[1...50]"
_ASSET_ID_SUFFIX = re.compile(r"\[[\d.]+\]$")


@dataclass
class OutputAsset:
    """Asset carried by a transaction output (amount in smallest units)."""

    name: str | None
    asset_id: str | None
    amount: int


@dataclass
class TxInput:
    """Transaction input."""

    address: str | None = None
    txid: str | None = None
    vout: int | None = None
    is_coinbase: bool = False


@dataclass
class TxOutput:
    """Transaction output."""

    n: int
    address: str | None = None
    value: Decimal = Decimal("0")
    script_type: str | None = None
    asset: OutputAsset | None = None

    @property
    def carries_asset(self) -> bool:
        """Check if output carries the asset-transfer marker."""
        return self.script_type == ASSET_TRANSFER_SCRIPT_TYPE or self.asset is not None


@dataclass
class NewAssetPayload:
    """Asset creation payload (type 8)."""

    name: str
    is_root: bool
    root_id: str | None = None
    is_unique: bool = False
    decimals: int = 0
    max_mint_count: int = 0
    updatable: bool = False
    reference_hash: str | None = None
    owner_address: str | None = None


@dataclass
class MintAssetPayload:
    """Asset mint payload (type 10)."""

    asset_id: str | None = None
    asset_name: str | None = None
    amount: int | None = None
    target_address: str | None = None


@dataclass
class UpdateAssetPayload:
    """Asset update payload (type 9). None means "field not changed"."""

    asset_id: str | None = None
    asset_name: str | None = None
    updatable: bool | None = None
    reference_hash: str | None = None
    owner_address: str | None = None
    max_mint_count: int | None = None


@dataclass
class FuturePayload:
    """
    Future lock payload (type 7).

    maturity is in blocks and lock_time in seconds, both counted from
    the block that carries the transaction.
    """

    lock_output_index: int | None
    maturity: int = 0
    lock_time: int = 0
    updatable_by_destination: bool = False


@dataclass
class ChainTransaction:
    """Transaction with its typed payloads."""

    txid: str
    type_code: int
    index: int
    size: int = 0
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    new_asset: NewAssetPayload | None = None
    mint_asset: MintAssetPayload | None = None
    update_asset: UpdateAssetPayload | None = None
    future: FuturePayload | None = None

    @property
    def asset_outputs(self) -> list[TxOutput]:
        """Outputs carrying the asset-transfer marker."""
        return [out for out in self.outputs if out.carries_asset]

    @property
    def is_coinbase(self) -> bool:
        """Check if transaction is the block's coinbase."""
        return bool(self.inputs) and self.inputs[0].is_coinbase


@dataclass
class ChainBlock:
    """Fully resolved block."""

    height: int
    hash: str
    time: datetime | None
    previous_hash: str | None = None
    merkle_root: str | None = None
    size: int = 0
    transactions: list[ChainTransaction] = field(default_factory=list)
    transaction_ids: list[str] = field(default_factory=list)

    @property
    def miner(self) -> str | None:
        """Address of the first coinbase output."""
        coinbase = self._coinbase()
        if coinbase:
            for out in coinbase.outputs:
                if out.address:
                    return out.address
        return None

    @property
    def reward(self) -> Decimal:
        """Value of the first coinbase output."""
        coinbase = self._coinbase()
        if coinbase and coinbase.outputs:
            return coinbase.outputs[0].value
        return Decimal("0")

    def _coinbase(self) -> ChainTransaction | None:
        if self.transactions and self.transactions[0].is_coinbase:
            return self.transactions[0]
        return None


# ========================================================================
# FIELD HELPERS
# ========================================================================


def strip_asset_id_suffix(asset_id: str | None) -> str | None:
    """
    Remove a trailing "[n]" or "[a...b]" suffix from an asset id.

    Args:
        asset_id: Asset id as found in an output

    Returns:
        Bare asset id (creating txid) or None
    """
    if not asset_id:
        return None
    return _ASSET_ID_SUFFIX.sub("", asset_id)


def parse_bool(value: Any) -> bool | None:
    """
    Parse a flag that may arrive as bool, number or string.

    Returns:
        True/False, or None when the value is missing or unrecognized
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
    return None


def _parse_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return default


def _parse_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def _first(data: dict, *keys: str) -> Any:
    """Return the first present (non-None) value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _address_of(data: dict) -> str | None:
    address = data.get("address")
    if address:
        return address
    addresses = data.get("addresses")
    if addresses:
        return addresses[0]
    return None


# ========================================================================
# PARSERS
# ========================================================================


def parse_output_asset(data: dict | None) -> OutputAsset | None:
    """Parse the asset object of an output."""
    if not data:
        return None
    return OutputAsset(
        name=_first(data, "name", "asset_name", "assetName"),
        asset_id=strip_asset_id_suffix(_first(data, "asset_id", "assetId", "id")),
        amount=_parse_int(data.get("amount"), 0),
    )


def parse_input(data: dict) -> TxInput:
    """Parse a raw vin entry or a normalized input."""
    return TxInput(
        address=_address_of(data),
        txid=data.get("txid"),
        vout=_parse_int(data.get("vout")),
        is_coinbase="coinbase" in data,
    )


def parse_output(data: dict, index: int) -> TxOutput:
    """
    Parse a raw vout entry or a normalized output.

    Args:
        data: Output data
        index: Position in the output list (used when "n" is absent)
    """
    script = data.get("scriptPubKey")
    if isinstance(script, dict):
        address = _address_of(script) or _address_of(data)
        script_type = script.get("type")
        asset = parse_output_asset(script.get("asset") or data.get("asset"))
    else:
        address = _address_of(data)
        script_type = data.get("type")
        asset = parse_output_asset(data.get("asset"))

    return TxOutput(
        n=_parse_int(data.get("n"), index),
        address=address,
        value=_parse_decimal(data.get("value")),
        script_type=script_type,
        asset=asset,
    )


def parse_new_asset(data: dict | None) -> NewAssetPayload | None:
    """
    Parse an asset creation payload.

    isRoot may be a bool or a string. When it is absent, a present rootId
    means the asset is not a root. The name is never inspected for a
    sub-asset delimiter.
    """
    if not data:
        return None

    root_id = data.get("rootId") or data.get("root_id") or None
    is_root = parse_bool(_first(data, "isRoot", "is_root"))
    if is_root is None:
        is_root = root_id is None

    return NewAssetPayload(
        name=str(data.get("name") or ""),
        is_root=is_root,
        root_id=root_id,
        is_unique=bool(parse_bool(_first(data, "isUnique", "is_unique"))),
        decimals=_parse_int(_first(data, "decimals", "decimalPoint"), 0),
        max_mint_count=_parse_int(_first(data, "maxMintCount", "max_mint_count"), 0),
        updatable=bool(parse_bool(data.get("updatable"))),
        reference_hash=_first(data, "referenceHash", "reference_hash") or None,
        owner_address=_first(data, "ownerAddress", "owner_address") or None,
    )


def parse_mint_asset(data: dict | None) -> MintAssetPayload | None:
    """Parse an asset mint payload."""
    if not data:
        return None
    return MintAssetPayload(
        asset_id=strip_asset_id_suffix(_first(data, "assetId", "asset_id")),
        asset_name=_first(data, "assetName", "asset_name", "name"),
        amount=_parse_int(data.get("amount")),
        target_address=_first(data, "targetAddress", "target_address"),
    )


def parse_update_asset(data: dict | None) -> UpdateAssetPayload | None:
    """Parse an asset update payload."""
    if not data:
        return None
    return UpdateAssetPayload(
        asset_id=strip_asset_id_suffix(_first(data, "assetId", "asset_id")),
        asset_name=_first(data, "assetName", "asset_name", "name"),
        updatable=parse_bool(data.get("updatable")),
        reference_hash=_first(data, "referenceHash", "reference_hash"),
        owner_address=_first(data, "ownerAddress", "owner_address"),
        max_mint_count=_parse_int(_first(data, "maxMintCount", "max_mint_count")),
    )


def parse_future(data: dict | None) -> FuturePayload | None:
    """Parse a future lock payload. Missing maturity or lock time count as 0."""
    if not data:
        return None
    return FuturePayload(
        lock_output_index=_parse_int(_first(data, "lockOutputIndex", "lock_output_index")),
        maturity=_parse_int(data.get("maturity"), 0),
        lock_time=_parse_int(_first(data, "lockTime", "lock_time"), 0),
        updatable_by_destination=bool(
            parse_bool(_first(data, "updatableByDestination", "updatable_by_destination"))
        ),
    )


def parse_transaction(data: dict, index: int) -> ChainTransaction:
    """
    Parse a decoded transaction.

    Args:
        data: Transaction data in either accepted shape
        index: Position of the transaction in its block
    """
    raw_inputs = data.get("vin") if "vin" in data else data.get("inputs")
    raw_outputs = data.get("vout") if "vout" in data else data.get("outputs")

    return ChainTransaction(
        txid=data.get("txid") or data.get("hash") or "",
        type_code=_parse_int(data.get("type"), 0),
        index=index,
        size=_parse_int(data.get("size"), 0),
        inputs=[parse_input(item) for item in raw_inputs or []],
        outputs=[parse_output(item, n) for n, item in enumerate(raw_outputs or [])],
        new_asset=parse_new_asset(_first(data, "newAssetTx", "NewAssetTx", "newAsset")),
        mint_asset=parse_mint_asset(_first(data, "mintAssetTx", "MintAssetTx", "mintAsset")),
        update_asset=parse_update_asset(
            _first(data, "updateAssetTx", "UpdateAssetTx", "updateAsset")
        ),
        future=parse_future(_first(data, "futureTx", "FutureTx", "future")),
    )


def parse_block(data: dict, height: int | None = None) -> ChainBlock:
    """
    Parse a block.

    Transaction entries given as bare ids (lower getblock verbosity) are
    kept in transaction_ids only.

    Args:
        data: Block data in either accepted shape
        height: Requested height (used when the block omits it)

    Returns:
        Parsed block. A missing hash becomes "" and a missing time None,
        both of which the writer rejects.
    """
    raw_txs = data.get("tx") if "tx" in data else data.get("transactions")

    transactions: list[ChainTransaction] = []
    transaction_ids: list[str] = []
    for index, item in enumerate(raw_txs or []):
        if isinstance(item, dict):
            tx = parse_transaction(item, index)
            transactions.append(tx)
            transaction_ids.append(tx.txid)
        else:
            transaction_ids.append(str(item))

    block_height = _parse_int(data.get("height"), height)

    return ChainBlock(
        height=block_height if block_height is not None else 0,
        hash=data.get("hash") or "",
        time=from_block_time(data.get("time")),
        previous_hash=_first(data, "previousblockhash", "parentHash", "previous_hash"),
        merkle_root=data.get("merkleroot"),
        size=_parse_int(data.get("size"), 0),
        transactions=transactions,
        transaction_ids=transaction_ids,
    )

"""
Transaction Classifier.

Maps a transaction to exactly one action variant based on its type code
and payload. Unknown codes produce an UnknownAction that callers log and
skip. A future transaction without its lock payload is treated like any
other value transaction.
"""

from dataclasses import dataclass

from loguru import logger

from asset_indexer.config.constants import (
    TX_TYPE_FUTURE,
    TX_TYPE_MINT_ASSET,
    TX_TYPE_NEW_ASSET,
    TX_TYPE_UPDATE_ASSET,
    VALUE_TX_TYPES,
)
from asset_indexer.services.chain.payloads import (
    ChainTransaction,
    FuturePayload,
    MintAssetPayload,
    NewAssetPayload,
    TxOutput,
    UpdateAssetPayload,
)


@dataclass
class CreateAction:
    """Asset creation (type 8)."""

    tx: ChainTransaction
    payload: NewAssetPayload


@dataclass
class MintAction:
    """Asset mint (type 10)."""

    tx: ChainTransaction
    payload: MintAssetPayload


@dataclass
class UpdateAction:
    """Asset metadata update (type 9)."""

    tx: ChainTransaction
    payload: UpdateAssetPayload


@dataclass
class TransferAction:
    """Value transaction carrying asset outputs."""

    tx: ChainTransaction
    outputs: list[TxOutput]


@dataclass
class FutureAction:
    """Future lock (type 7); asset outputs are still transfers."""

    tx: ChainTransaction
    payload: FuturePayload
    outputs: list[TxOutput]


@dataclass
class StandardAction:
    """Value transaction without asset outputs (no derived record)."""

    tx: ChainTransaction


@dataclass
class UnknownAction:
    """Unrecognized type code or missing typed payload."""

    tx: ChainTransaction
    reason: str


TxAction = (
    CreateAction
    | MintAction
    | UpdateAction
    | TransferAction
    | FutureAction
    | StandardAction
    | UnknownAction
)


def classify(tx: ChainTransaction) -> TxAction:
    """
    Classify a transaction.

    Args:
        tx: Parsed transaction

    Returns:
        One action variant. Never raises for unexpected input.
    """
    code = tx.type_code

    if code == TX_TYPE_FUTURE and tx.future is not None:
        return FutureAction(tx=tx, payload=tx.future, outputs=tx.asset_outputs)

    if code in VALUE_TX_TYPES:
        outputs = tx.asset_outputs
        if outputs:
            return TransferAction(tx=tx, outputs=outputs)
        return StandardAction(tx=tx)

    if code == TX_TYPE_NEW_ASSET:
        if tx.new_asset is None:
            return UnknownAction(tx=tx, reason="creation without newAssetTx payload")
        return CreateAction(tx=tx, payload=tx.new_asset)

    if code == TX_TYPE_MINT_ASSET:
        if tx.mint_asset is None:
            return UnknownAction(tx=tx, reason="mint without mintAssetTx payload")
        return MintAction(tx=tx, payload=tx.mint_asset)

    if code == TX_TYPE_UPDATE_ASSET:
        if tx.update_asset is None:
            return UnknownAction(tx=tx, reason="update without updateAssetTx payload")
        return UpdateAction(tx=tx, payload=tx.update_asset)

    return UnknownAction(tx=tx, reason=f"unknown type code {code}")


def log_unknown(action: UnknownAction, height: int) -> None:
    """Log a skipped transaction at low severity."""
    logger.debug(
        f"[Classifier] Skipping tx {action.tx.txid} at block {height}: "
        f"{action.reason}"
    )

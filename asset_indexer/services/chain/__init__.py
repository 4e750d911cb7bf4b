"""
Chain data source.

Node RPC client and typed block payloads.
"""

from asset_indexer.services.chain.data_source import ChainDataSource
from asset_indexer.services.chain.payloads import (
    ChainBlock,
    ChainTransaction,
    MintAssetPayload,
    NewAssetPayload,
    OutputAsset,
    TxInput,
    TxOutput,
    UpdateAssetPayload,
    parse_block,
)
from asset_indexer.services.chain.rpc_client import ChainRpcClient

__all__ = [
    "ChainBlock",
    "ChainDataSource",
    "ChainRpcClient",
    "ChainTransaction",
    "MintAssetPayload",
    "NewAssetPayload",
    "OutputAsset",
    "TxInput",
    "TxOutput",
    "UpdateAssetPayload",
    "parse_block",
]

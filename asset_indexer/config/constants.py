"""
Application constants.

Centralized constants for the indexer.
"""

# ========================================================================
# CHAIN CONSTANTS
# ========================================================================

# Special transaction type codes carried in the "type" field of a transaction
TX_TYPE_STANDARD = 0
TX_TYPE_PROVIDER_REGISTER = 1
TX_TYPE_PROVIDER_UPDATE_SERVICE = 2
TX_TYPE_PROVIDER_UPDATE_REGISTRAR = 3
TX_TYPE_PROVIDER_UPDATE_REVOKE = 4
TX_TYPE_COINBASE = 5
TX_TYPE_QUORUM_COMMITMENT = 6
TX_TYPE_FUTURE = 7
TX_TYPE_NEW_ASSET = 8
TX_TYPE_UPDATE_ASSET = 9
TX_TYPE_MINT_ASSET = 10

# Special types that carry no asset payload but may still move assets
# through their outputs. Future transactions additionally lock one output.
VALUE_TX_TYPES = frozenset({
    TX_TYPE_STANDARD,
    TX_TYPE_PROVIDER_REGISTER,
    TX_TYPE_PROVIDER_UPDATE_SERVICE,
    TX_TYPE_PROVIDER_UPDATE_REGISTRAR,
    TX_TYPE_PROVIDER_UPDATE_REVOKE,
    TX_TYPE_COINBASE,
    TX_TYPE_QUORUM_COMMITMENT,
    TX_TYPE_FUTURE,
})

# Script type of outputs that carry an asset
ASSET_TRANSFER_SCRIPT_TYPE = "transferasset"

# Smallest units per native coin
COIN = 100_000_000

# ========================================================================
# ASSET NAMING
# ========================================================================

SUB_ASSET_DELIMITER = "|"
UNKNOWN_PARENT_NAME = "UNKNOWN"

# Maximum decimal places an asset can declare
MAX_ASSET_DECIMALS = 8

# ========================================================================
# RPC CONSTANTS
# ========================================================================

RPC_TIMEOUT = 30.0  # Standard RPC call timeout (seconds)
RPC_MAX_RETRIES = 3  # Attempts per RPC call before the error surfaces
RPC_RETRY_DELAY_BASE = 2  # Base delay in seconds for exponential backoff
RPC_BLOCK_VERBOSITY = 2  # getblock verbosity that includes decoded transactions

# ========================================================================
# SYNC CONSTANTS
# ========================================================================

DEFAULT_SYNC_STREAM = "blocks"

"""
Asset Indexer.

Walks a UTXO chain with an asset layer and keeps an idempotent relational
index of blocks, asset transactions, assets and asset transfers.
"""

__version__ = "1.0.0"

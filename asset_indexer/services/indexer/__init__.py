"""
Block indexing.

Classifier, lineage processor, idempotent writer and the shared block
pipeline.
"""

from asset_indexer.services.indexer.classifier import TxAction, classify
from asset_indexer.services.indexer.lineage import derive_block, to_display_amount
from asset_indexer.services.indexer.pipeline import BlockPipeline, BlockResult
from asset_indexer.services.indexer.records import AssetState, BlockRecords
from asset_indexer.services.indexer.writer import IdempotentWriter, WriteStats

__all__ = [
    "AssetState",
    "BlockPipeline",
    "BlockRecords",
    "BlockResult",
    "IdempotentWriter",
    "TxAction",
    "WriteStats",
    "classify",
    "derive_block",
    "to_display_amount",
]

"""create indexer tables

Revision ID: 20261017_000001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261017_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create blocks, transactions, assets, asset_transfers and sync_state."""
    op.create_table(
        'blocks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('height', sa.BigInteger(), nullable=False),
        sa.Column('hash', sa.String(64), nullable=False),
        sa.Column('previous_hash', sa.String(64), nullable=True),
        sa.Column('merkle_root', sa.String(64), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False, default=0),
        sa.Column('transaction_count', sa.Integer(), nullable=False, default=0),
        sa.Column('transaction_ids', sa.JSON(), nullable=False),
        sa.Column('miner', sa.String(64), nullable=True),
        sa.Column('reward', sa.DECIMAL(24, 8), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_blocks_height', 'blocks', ['height'], unique=True)
    op.create_index('ix_blocks_hash', 'blocks', ['hash'], unique=True)
    op.create_index('ix_blocks_timestamp', 'blocks', ['timestamp'])
    op.create_index('ix_blocks_miner', 'blocks', ['miner'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('txid', sa.String(64), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('tx_index', sa.Integer(), nullable=False, default=0),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('tx_type', sa.String(20), nullable=False),
        sa.Column('type_code', sa.Integer(), nullable=False, default=0),
        sa.Column('size', sa.Integer(), nullable=False, default=0),
        sa.Column('fee', sa.DECIMAL(24, 8), nullable=False),
        sa.Column('asset_id', sa.String(64), nullable=True),
        sa.Column('asset_name', sa.String(255), nullable=True),
        sa.Column('amount', sa.DECIMAL(36, 8), nullable=True),
        sa.Column('from_address', sa.String(64), nullable=True),
        sa.Column('to_address', sa.String(64), nullable=True),
        sa.Column('inputs', sa.JSON(), nullable=False),
        sa.Column('outputs', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transactions_txid', 'transactions', ['txid'], unique=True)
    op.create_index('ix_transactions_block_height', 'transactions', ['block_height'])
    op.create_index('ix_transactions_timestamp', 'transactions', ['timestamp'])
    op.create_index('ix_transactions_tx_type', 'transactions', ['tx_type'])
    op.create_index('ix_transactions_asset_id', 'transactions', ['asset_id'])

    op.create_table(
        'assets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('asset_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('asset_type', sa.String(20), nullable=False),
        sa.Column('created_txid', sa.String(64), nullable=False),
        sa.Column('created_block_height', sa.BigInteger(), nullable=False),
        sa.Column('created_at_block', sa.DateTime(timezone=True), nullable=False),
        sa.Column('creator', sa.String(64), nullable=True),
        sa.Column('is_root', sa.Boolean(), nullable=False, default=True),
        sa.Column('is_unique', sa.Boolean(), nullable=False, default=False),
        sa.Column('decimals', sa.Integer(), nullable=False, default=0),
        sa.Column('max_mint_count', sa.Integer(), nullable=False, default=0),
        sa.Column('updatable', sa.Boolean(), nullable=False, default=False),
        sa.Column('reference_hash', sa.String(128), nullable=True),
        sa.Column('owner', sa.String(64), nullable=True),
        sa.Column('last_update_txid', sa.String(64), nullable=True),
        sa.Column('last_update_height', sa.BigInteger(), nullable=True),
        sa.Column('total_supply', sa.DECIMAL(36, 8), nullable=False),
        sa.Column('circulating_supply', sa.DECIMAL(36, 8), nullable=False),
        sa.Column('mint_count', sa.Integer(), nullable=False, default=0),
        sa.Column('transfer_count', sa.Integer(), nullable=False, default=0),
        sa.Column('current_holder', sa.String(64), nullable=True),
        sa.Column('is_sub_asset', sa.Boolean(), nullable=False, default=False),
        sa.Column('root_id', sa.String(64), nullable=True),
        sa.Column('parent_asset_id', sa.String(64), nullable=True),
        sa.Column('parent_asset_name', sa.String(255), nullable=True),
        sa.Column('sub_asset_name', sa.String(255), nullable=True),
        sa.Column('parent_pending', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assets_asset_id', 'assets', ['asset_id'], unique=True)
    op.create_index('ix_assets_name', 'assets', ['name'])
    op.create_index('ix_assets_asset_type', 'assets', ['asset_type'])
    op.create_index('ix_assets_created_block_height', 'assets', ['created_block_height'])
    op.create_index('ix_assets_creator', 'assets', ['creator'])
    op.create_index('ix_assets_owner', 'assets', ['owner'])
    op.create_index('ix_assets_current_holder', 'assets', ['current_holder'])
    op.create_index('ix_assets_is_sub_asset', 'assets', ['is_sub_asset'])
    op.create_index('ix_assets_parent_asset_id', 'assets', ['parent_asset_id'])
    op.create_index('ix_assets_parent_pending', 'assets', ['parent_pending'])

    op.create_table(
        'asset_transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('txid', sa.String(64), nullable=False),
        sa.Column('vout', sa.Integer(), nullable=False),
        sa.Column('asset_id', sa.String(64), nullable=False),
        sa.Column('asset_name', sa.String(255), nullable=False),
        sa.Column('transfer_type', sa.String(20), nullable=False),
        sa.Column('from_address', sa.String(64), nullable=True),
        sa.Column('to_address', sa.String(64), nullable=False),
        sa.Column('amount', sa.DECIMAL(36, 8), nullable=False),
        sa.Column('amount_raw', sa.String(100), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('tx_index', sa.Integer(), nullable=False, default=0),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('txid', 'vout', name='uq_asset_transfer_txid_vout'),
    )
    op.create_index('ix_asset_transfers_txid', 'asset_transfers', ['txid'])
    op.create_index('ix_asset_transfers_asset_id', 'asset_transfers', ['asset_id'])
    op.create_index('ix_asset_transfers_asset_name', 'asset_transfers', ['asset_name'])
    op.create_index('ix_asset_transfers_transfer_type', 'asset_transfers', ['transfer_type'])
    op.create_index('ix_asset_transfers_from_address', 'asset_transfers', ['from_address'])
    op.create_index('ix_asset_transfers_to_address', 'asset_transfers', ['to_address'])
    op.create_index('ix_asset_transfers_block_height', 'asset_transfers', ['block_height'])
    op.create_index('ix_asset_transfers_timestamp', 'asset_transfers', ['timestamp'])

    op.create_table(
        'sync_state',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('stream', sa.String(20), nullable=False),
        sa.Column('current_height', sa.BigInteger(), nullable=False, default=0),
        sa.Column('target_height', sa.BigInteger(), nullable=False, default=0),
        sa.Column('start_height', sa.BigInteger(), nullable=False, default=0),
        sa.Column('status', sa.String(20), nullable=False, default='not_started'),
        sa.Column('blocks_processed', sa.Integer(), nullable=False, default=0),
        sa.Column('items_processed', sa.Integer(), nullable=False, default=0),
        sa.Column('average_block_ms', sa.Float(), nullable=False, default=0.0),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('error_count', sa.Integer(), nullable=False, default=0),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_state_stream', 'sync_state', ['stream'], unique=True)
    op.create_index('ix_sync_state_current_height', 'sync_state', ['current_height'])
    op.create_index('ix_sync_state_status', 'sync_state', ['status'])


def downgrade() -> None:
    """Drop indexer tables."""
    op.drop_table('sync_state')
    op.drop_table('asset_transfers')
    op.drop_table('assets')
    op.drop_table('transactions')
    op.drop_table('blocks')

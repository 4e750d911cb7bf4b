"""create future outputs

Revision ID: 20261017_000002
Revises: 20261017_000001
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261017_000002'
down_revision: Union[str, None] = '20261017_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create future_outputs."""
    op.create_table(
        'future_outputs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('txid', sa.String(64), nullable=False),
        sa.Column('vout', sa.Integer(), nullable=False),
        sa.Column('future_type', sa.String(20), nullable=False),
        sa.Column('recipient', sa.String(64), nullable=False),
        sa.Column('amount', sa.DECIMAL(36, 8), nullable=True),
        sa.Column('amount_raw', sa.String(100), nullable=False),
        sa.Column('asset_id', sa.String(64), nullable=True),
        sa.Column('asset_name', sa.String(255), nullable=True),
        sa.Column('maturity', sa.Integer(), nullable=False, default=0),
        sa.Column('lock_time', sa.BigInteger(), nullable=False, default=0),
        sa.Column('updatable_by_destination', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_height', sa.BigInteger(), nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('created_at_block', sa.DateTime(timezone=True), nullable=False),
        sa.Column('unlock_height', sa.BigInteger(), nullable=True),
        sa.Column('unlock_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('unlocked_by', sa.String(20), nullable=True),
        sa.Column('unlocked_height', sa.BigInteger(), nullable=True),
        sa.Column('unlocked_at_block', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('txid', 'vout', name='uq_future_output_txid_vout'),
    )
    op.create_index('ix_future_outputs_txid', 'future_outputs', ['txid'])
    op.create_index('ix_future_outputs_future_type', 'future_outputs', ['future_type'])
    op.create_index('ix_future_outputs_recipient', 'future_outputs', ['recipient'])
    op.create_index('ix_future_outputs_asset_id', 'future_outputs', ['asset_id'])
    op.create_index('ix_future_outputs_created_height', 'future_outputs', ['created_height'])
    op.create_index('ix_future_outputs_unlock_height', 'future_outputs', ['unlock_height'])
    op.create_index('ix_future_outputs_unlock_time', 'future_outputs', ['unlock_time'])
    op.create_index('ix_future_outputs_status', 'future_outputs', ['status'])


def downgrade() -> None:
    """Drop future_outputs."""
    op.drop_table('future_outputs')

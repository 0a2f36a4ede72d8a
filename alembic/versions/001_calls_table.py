"""Calls table

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'calls',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('callback_token', sa.String(), nullable=False),
        sa.Column('caller_id', sa.String(), nullable=True),
        sa.Column('call_connection_id', sa.String(), nullable=True),
        sa.Column('answered_for', sa.String(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_calls_id'), 'calls', ['id'], unique=False)
    op.create_index(op.f('ix_calls_callback_token'), 'calls', ['callback_token'], unique=True)
    op.create_index(op.f('ix_calls_call_connection_id'), 'calls', ['call_connection_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_calls_call_connection_id'), table_name='calls')
    op.drop_index(op.f('ix_calls_callback_token'), table_name='calls')
    op.drop_index(op.f('ix_calls_id'), table_name='calls')
    op.drop_table('calls')

"""create accounts, active_runs and historical_runs

Revision ID: 3e1c9a7f52d0
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e1c9a7f52d0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    tables = inspector.get_table_names()

    if 'accounts' not in tables:
        op.create_table(
            'accounts',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('credential_hash', sa.String(), nullable=False),
            sa.Column('active_run_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        )
        op.create_index('ix_accounts_id', 'accounts', ['id'])
        op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    if 'active_runs' not in tables:
        op.create_table(
            'active_runs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
            sa.Column('origin_lat', sa.Float(), nullable=False),
            sa.Column('origin_lng', sa.Float(), nullable=False),
            sa.Column('destination_lat', sa.Float(), nullable=False),
            sa.Column('destination_lng', sa.Float(), nullable=False),
            sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('needed_arrival_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('pace_needed', sa.String(), nullable=False),
            sa.Column('distance_hint', sa.String(), nullable=True),
            sa.Column('distance_m', sa.Integer(), nullable=True),
        )
        op.create_index('ix_active_runs_id', 'active_runs', ['id'])
        # One active run per account
        op.create_index('ix_active_runs_account_id', 'active_runs', ['account_id'], unique=True)

    if 'historical_runs' not in tables:
        op.create_table(
            'historical_runs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
            sa.Column('source_run_id', sa.Integer(), nullable=False, unique=True),
            sa.Column('origin_lat', sa.Float(), nullable=False),
            sa.Column('origin_lng', sa.Float(), nullable=False),
            sa.Column('destination_lat', sa.Float(), nullable=False),
            sa.Column('destination_lng', sa.Float(), nullable=False),
            sa.Column('distance_m', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('average_pace', sa.String(), nullable=False),
            sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_historical_runs_id', 'historical_runs', ['id'])
        op.create_index('ix_historical_runs_account_id', 'historical_runs', ['account_id'])
        op.create_index('ix_historical_runs_completed_at', 'historical_runs', ['completed_at'])


def downgrade() -> None:
    # Safe drop if exists
    op.execute('DROP TABLE IF EXISTS historical_runs')
    op.execute('DROP TABLE IF EXISTS active_runs')
    op.execute('DROP TABLE IF EXISTS accounts')

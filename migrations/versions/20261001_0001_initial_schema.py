"""Initial schema: users, token quotas, subscriptions, token ledger.

Revision ID: 001
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('display_name', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Remaining tokens are derived (total - used) and deliberately not stored
    op.create_table(
        'user_tokens',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('total_tokens', sa.Integer, nullable=False, server_default='100'),
        sa.Column('used_tokens', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('total_tokens >= 0', name='ck_user_tokens_total_nonneg'),
        sa.CheckConstraint('used_tokens >= 0', name='ck_user_tokens_used_nonneg'),
    )
    op.create_index('ix_user_tokens_user_id', 'user_tokens', ['user_id'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('plan_type', sa.String(50), nullable=False, server_default='standard'),  # standard, unlimited
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('price', sa.Integer, nullable=False, server_default='0'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=True)

    op.create_table(
        'token_transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(100), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer, nullable=False),  # Positive = grant, negative = usage
        sa.Column('type', sa.String(50), nullable=False),  # initial_grant, usage, premium_grant
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('used_after', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_token_transactions_user_id', 'token_transactions', ['user_id'])
    op.create_index('idx_token_transactions_created', 'token_transactions', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_token_transactions_created', 'token_transactions')
    op.drop_index('ix_token_transactions_user_id', 'token_transactions')
    op.drop_table('token_transactions')

    op.drop_index('ix_subscriptions_user_id', 'subscriptions')
    op.drop_table('subscriptions')

    op.drop_index('ix_user_tokens_user_id', 'user_tokens')
    op.drop_table('user_tokens')

    op.drop_index('ix_users_email', 'users')
    op.drop_table('users')

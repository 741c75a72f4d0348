"""Create credit ledger tables.

Revision ID: 1f3a9c2b7d40
Revises:
Create Date: 2026-10-19 10:12:03.000000

"""
from alembic import op
import sqlalchemy as sa
from typing import Sequence, Union

# revision identifiers, used by Alembic.
revision: str = '1f3a9c2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'user_credit_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('free_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchased_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('free_credits >= 0', name='ck_user_credit_accounts_free_non_negative'),
        sa.CheckConstraint('purchased_credits >= 0', name='ck_user_credit_accounts_purchased_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_credit_accounts_id'), 'user_credit_accounts', ['id'], unique=False)
    op.create_index(op.f('ix_user_credit_accounts_user_id'), 'user_credit_accounts', ['user_id'], unique=True)

    # The primary key on reference is what makes fulfillment exactly-once
    op.create_table(
        'transaction_records',
        sa.Column('reference', sa.String(100), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('credits_granted', sa.Integer(), nullable=False),
        sa.Column('amount_minor_units', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='success'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('reference')
    )
    op.create_index(op.f('ix_transaction_records_user_id'), 'transaction_records', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_transaction_records_user_id'), table_name='transaction_records')
    op.drop_table('transaction_records')
    op.drop_index(op.f('ix_user_credit_accounts_user_id'), table_name='user_credit_accounts')
    op.drop_index(op.f('ix_user_credit_accounts_id'), table_name='user_credit_accounts')
    op.drop_table('user_credit_accounts')

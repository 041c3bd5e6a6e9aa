"""initial schema

Revision ID: 3c1e9a7d52b4
Revises:
Create Date: 2026-10-16 09:12:41.207316

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e9a7d52b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('plaid_items',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('access_token', sa.String(), nullable=False),
    sa.Column('institution_id', sa.String(), nullable=True),
    sa.Column('institution_name', sa.String(), nullable=True),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('last_error_code', sa.String(), nullable=True),
    sa.Column('transactions_cursor', sa.String(), nullable=True),
    sa.Column('new_transactions_pending', sa.Boolean(), nullable=False),
    sa.Column('last_synced_at', sa.DateTime(), nullable=True),
    sa.Column('last_updated', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plaid_items_item_id'), 'plaid_items', ['item_id'], unique=True)

    op.create_table('categories',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('plaid_name', sa.String(), nullable=True),
    sa.Column('expense', sa.Boolean(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('name')
    )
    op.create_index(op.f('ix_categories_plaid_name'), 'categories', ['plaid_name'], unique=False)

    op.create_table('category_rules',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('match_string', sa.String(), nullable=False),
    sa.Column('category_id', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('plaid_accounts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('mask', sa.String(), nullable=True),
    sa.Column('type', sa.String(), nullable=False),
    sa.Column('subtype', sa.String(), nullable=True),
    sa.Column('current_balance_cents', sa.BigInteger(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['item_id'], ['plaid_items.item_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('account_id')
    )
    op.create_index(op.f('ix_plaid_accounts_item_id'), 'plaid_accounts', ['item_id'], unique=False)

    op.create_table('transactions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('plaid_transaction_id', sa.String(), nullable=False),
    sa.Column('item_id', sa.String(), nullable=False),
    sa.Column('plaid_account_id', sa.String(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('amount_cents', sa.BigInteger(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('merchant_name', sa.String(), nullable=True),
    sa.Column('provider_category', sa.String(), nullable=True),
    sa.Column('category_id', sa.Integer(), nullable=True),
    sa.Column('pending', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
    sa.ForeignKeyConstraint(['item_id'], ['plaid_items.item_id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_plaid_transaction_id'), 'transactions', ['plaid_transaction_id'], unique=True)
    op.create_index(op.f('ix_transactions_item_id'), 'transactions', ['item_id'], unique=False)
    op.create_index(op.f('ix_transactions_plaid_account_id'), 'transactions', ['plaid_account_id'], unique=False)
    op.create_index(op.f('ix_transactions_date'), 'transactions', ['date'], unique=False)
    op.create_index(op.f('ix_transactions_category_id'), 'transactions', ['category_id'], unique=False)

    op.create_table('snaptrade_users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(), nullable=False),
    sa.Column('user_secret', sa.String(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id')
    )

    op.create_table('snaptrade_connections',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('connection_id', sa.String(), nullable=False),
    sa.Column('brokerage', sa.String(), nullable=False),
    sa.Column('status', sa.String(), nullable=False),
    sa.Column('last_checked', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_snaptrade_connections_connection_id'), 'snaptrade_connections', ['connection_id'], unique=True)

    op.create_table('daily_snapshots',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('snapshot_date', sa.Date(), nullable=False),
    sa.Column('portfolio_value_cents', sa.BigInteger(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_daily_snapshots_snapshot_date'), 'daily_snapshots', ['snapshot_date'], unique=True)

    op.create_table('daily_holdings',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('holding_date', sa.Date(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('symbol', sa.String(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=20, scale=8), nullable=False),
    sa.Column('value_cents', sa.BigInteger(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('holding_date', 'account_id', 'symbol', name='uix_daily_holding')
    )
    op.create_index(op.f('ix_daily_holdings_holding_date'), 'daily_holdings', ['holding_date'], unique=False)
    op.create_index(op.f('ix_daily_holdings_account_id'), 'daily_holdings', ['account_id'], unique=False)
    op.create_index(op.f('ix_daily_holdings_symbol'), 'daily_holdings', ['symbol'], unique=False)

    op.create_table('monthly_snapshots',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('month', sa.Date(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('portfolio_value_cents', sa.BigInteger(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('month', 'account_id', name='uix_monthly_snapshot')
    )
    op.create_index(op.f('ix_monthly_snapshots_month'), 'monthly_snapshots', ['month'], unique=False)
    op.create_index(op.f('ix_monthly_snapshots_account_id'), 'monthly_snapshots', ['account_id'], unique=False)

    op.create_table('yearly_snapshots',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('year', sa.Integer(), nullable=False),
    sa.Column('account_id', sa.String(), nullable=False),
    sa.Column('portfolio_value_cents', sa.BigInteger(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('year', 'account_id', name='uix_yearly_snapshot')
    )
    op.create_index(op.f('ix_yearly_snapshots_year'), 'yearly_snapshots', ['year'], unique=False)

    op.create_table('transaction_monthly_summaries',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('month', sa.Date(), nullable=False),
    sa.Column('category_id', sa.Integer(), nullable=True),
    sa.Column('total_cents', sa.BigInteger(), nullable=False),
    sa.Column('transaction_count', sa.Integer(), nullable=False),
    sa.Column('inflow_cents', sa.BigInteger(), nullable=False),
    sa.Column('outflow_cents', sa.BigInteger(), nullable=False),
    sa.Column('inflow_count', sa.Integer(), nullable=False),
    sa.Column('outflow_count', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('month', 'category_id', name='uix_transaction_monthly_summary')
    )
    op.create_index(op.f('ix_transaction_monthly_summaries_month'), 'transaction_monthly_summaries', ['month'], unique=False)

    op.create_table('budgets',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('allocations', sa.JSON(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('budgets')
    op.drop_index(op.f('ix_transaction_monthly_summaries_month'), table_name='transaction_monthly_summaries')
    op.drop_table('transaction_monthly_summaries')
    op.drop_index(op.f('ix_yearly_snapshots_year'), table_name='yearly_snapshots')
    op.drop_table('yearly_snapshots')
    op.drop_index(op.f('ix_monthly_snapshots_account_id'), table_name='monthly_snapshots')
    op.drop_index(op.f('ix_monthly_snapshots_month'), table_name='monthly_snapshots')
    op.drop_table('monthly_snapshots')
    op.drop_index(op.f('ix_daily_holdings_symbol'), table_name='daily_holdings')
    op.drop_index(op.f('ix_daily_holdings_account_id'), table_name='daily_holdings')
    op.drop_index(op.f('ix_daily_holdings_holding_date'), table_name='daily_holdings')
    op.drop_table('daily_holdings')
    op.drop_index(op.f('ix_daily_snapshots_snapshot_date'), table_name='daily_snapshots')
    op.drop_table('daily_snapshots')
    op.drop_index(op.f('ix_snaptrade_connections_connection_id'), table_name='snaptrade_connections')
    op.drop_table('snaptrade_connections')
    op.drop_table('snaptrade_users')
    op.drop_index(op.f('ix_transactions_category_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_date'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_plaid_account_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_item_id'), table_name='transactions')
    op.drop_index(op.f('ix_transactions_plaid_transaction_id'), table_name='transactions')
    op.drop_table('transactions')
    op.drop_index(op.f('ix_plaid_accounts_item_id'), table_name='plaid_accounts')
    op.drop_table('plaid_accounts')
    op.drop_table('category_rules')
    op.drop_index(op.f('ix_categories_plaid_name'), table_name='categories')
    op.drop_table('categories')
    op.drop_index(op.f('ix_plaid_items_item_id'), table_name='plaid_items')
    op.drop_table('plaid_items')

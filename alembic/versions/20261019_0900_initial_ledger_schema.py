"""Initial ledger schema

Revision ID: 20261019_0900_initial_ledger_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261019_0900_initial_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _shop_id():
    return sa.Column(
        'shop_id', postgresql.UUID(as_uuid=True),
        sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True,
    )


def upgrade() -> None:
    account_type_enum = postgresql.ENUM(
        'ASSET', 'LIABILITY', 'EQUITY', 'REVENUE', 'EXPENSE',
        name='account_type',
        create_type=False
    )
    account_type_enum.create(op.get_bind(), checkfirst=True)

    payment_kind_enum = postgresql.ENUM('CASH', 'BANK', name='payment_account_kind', create_type=False)
    payment_kind_enum.create(op.get_bind(), checkfirst=True)

    stock_field_enum = postgresql.ENUM(
        'opening_stock_value', 'closing_stock_value',
        name='stock_value_field',
        create_type=False
    )
    stock_field_enum.create(op.get_bind(), checkfirst=True)

    transaction_type_enum = postgresql.ENUM(
        'SALE', 'PURCHASE', 'PAYMENT', 'RECEIPT', 'ADJUSTMENT', 'TRANSFER',
        'OPENING_BALANCE', 'CLOSING_BALANCE',
        name='transaction_type',
        create_type=False
    )
    transaction_type_enum.create(op.get_bind(), checkfirst=True)

    # =========================================================================
    # SHOPS
    # =========================================================================
    op.create_table(
        'shops',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name_local', sa.String(100), nullable=False),
        sa.Column('name_global', sa.String(100), nullable=False),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('name_local', 'name_global', name='uq_shops_names'),
    )

    # =========================================================================
    # CHART OF ACCOUNTS
    # =========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('name_local', sa.String(100), nullable=False),
        sa.Column('name_global', sa.String(100), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('level', sa.Integer, nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('parent_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('account_type', postgresql.ENUM(name='account_type', create_type=False), nullable=False, index=True),
        sa.Column('is_system_account', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('balance', sa.Numeric(18, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('shop_id', 'code', name='uq_accounts_shop_code'),
        sa.UniqueConstraint('shop_id', 'name_local', 'name_global', name='uq_accounts_shop_names'),
    )

    # =========================================================================
    # EXPENSE CATEGORIES
    # =========================================================================
    op.create_table(
        'expense_categories',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('name_local', sa.String(100), nullable=False),
        sa.Column('name_global', sa.String(100), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('level', sa.Integer, nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('parent_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('expense_categories.id', ondelete='RESTRICT'), nullable=True, index=True),
        sa.Column('is_system_category', sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('shop_id', 'code', name='uq_expense_categories_shop_code'),
    )

    op.create_table(
        'category_account_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('expense_categories.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint('category_id', 'account_id', name='uq_category_account_assignments_pair'),
    )

    # =========================================================================
    # CASH / BANK ACCOUNTS AND BALANCE HISTORY
    # =========================================================================
    for table in ('cash_accounts', 'bank_accounts'):
        extra = []
        if table == 'bank_accounts':
            extra = [
                sa.Column('account_number', sa.String(50), nullable=False),
                sa.Column('bank_name', sa.String(100), nullable=False),
                sa.Column('iban', sa.String(50), nullable=True),
            ]
        op.create_table(
            table,
            sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
            _shop_id(),
            sa.Column('name_local', sa.String(100), nullable=False),
            sa.Column('name_global', sa.String(100), nullable=False),
            sa.Column('opening_balance', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('current_balance', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column('is_default', sa.Boolean, nullable=False, server_default=sa.false()),
            *extra,
            *_timestamps(),
        )
        # At most one default account of each kind per shop
        op.create_index(
            f'ix_{table}_one_default', table, ['shop_id'],
            unique=True, postgresql_where=sa.text('is_default'),
        )

    op.create_table(
        'balance_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('account_kind', postgresql.ENUM(name='payment_account_kind', create_type=False), nullable=False),
        sa.Column('account_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('previous_balance', sa.Numeric(18, 2), nullable=False),
        sa.Column('new_balance', sa.Numeric(18, 2), nullable=False),
        sa.Column('change_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('change_reason', sa.Text, nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
    )

    # =========================================================================
    # FINANCIAL YEARS
    # =========================================================================
    op.create_table(
        'financial_years',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('opening_stock_value', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('closing_stock_value', sa.Numeric(18, 2), nullable=True),
        sa.Column('is_current', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_closed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    # At most one current year per shop
    op.create_index(
        'ix_financial_years_one_current', 'financial_years', ['shop_id'],
        unique=True, postgresql_where=sa.text('is_current'),
    )

    op.create_table(
        'stock_value_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('financial_year_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('financial_years.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('field_changed', postgresql.ENUM(name='stock_value_field', create_type=False), nullable=False),
        sa.Column('old_value', sa.Numeric(18, 2), nullable=True),
        sa.Column('new_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
    )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================
    op.create_table(
        'transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        _shop_id(),
        sa.Column('transaction_type', postgresql.ENUM(name='transaction_type', create_type=False), nullable=False, index=True),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(18, 2), nullable=True),
        sa.Column('change', sa.Numeric(18, 2), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('debit_account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('credit_account_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('debit_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('credit_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('financial_year_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('financial_years.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('payment_account_kind', postgresql.ENUM(name='payment_account_kind', create_type=False), nullable=True),
        sa.Column('payment_account_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_transactions_positive_amount'),
        sa.CheckConstraint('debit_account_id <> credit_account_id', name='ck_transactions_distinct_accounts'),
    )


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('stock_value_history')
    op.drop_index('ix_financial_years_one_current', table_name='financial_years')
    op.drop_table('financial_years')
    op.drop_table('balance_history')
    op.drop_index('ix_bank_accounts_one_default', table_name='bank_accounts')
    op.drop_table('bank_accounts')
    op.drop_index('ix_cash_accounts_one_default', table_name='cash_accounts')
    op.drop_table('cash_accounts')
    op.drop_table('category_account_assignments')
    op.drop_table('expense_categories')
    op.drop_table('accounts')
    op.drop_table('shops')

    op.execute('DROP TYPE IF EXISTS transaction_type')
    op.execute('DROP TYPE IF EXISTS stock_value_field')
    op.execute('DROP TYPE IF EXISTS payment_account_kind')
    op.execute('DROP TYPE IF EXISTS account_type')

"""initial karat schema

Revision ID: k0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the back-office schema:
- shops, users, session_tokens: tenancy and auth
- customers, products, rate_master: catalogue and metal rates
- stock_items, sales_orders, sales_order_lines, sales_payments: selling
- emi_payments, emi_installments: installment plans
- transactions: ledger derived from payments
- audit_logs: best-effort audit trail

stock_items.sales_order_line_id and sales_order_lines.stock_item_id point
at each other; the former FK is added after both tables exist.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'k0001'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def upgrade():
    # ============================================================================
    # Tenancy and auth
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id', name='pk_shops'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_shops_code', 'shops', ['code'], unique=True)
    op.create_index('ix_shops_is_active', 'shops', ['is_active'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_users_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('shop_id', 'username', name='uq_users_shop_username'),
        sa.UniqueConstraint('shop_id', 'email', name='uq_users_shop_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_shop_id', 'users', ['shop_id'])
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_session_tokens_user_id_users'),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_session_tokens_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_session_tokens'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_shop_id', 'session_tokens', ['shop_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])

    # ============================================================================
    # Catalogue and rates
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('customer_type', sa.String(length=16), nullable=False),
        sa.Column('lifecycle', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_customers_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('shop_id', 'phone', name='uq_customers_shop_phone'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customers_shop_id', 'customers', ['shop_id'])
    op.create_index('ix_customers_lifecycle', 'customers', ['lifecycle'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('purity', sa.String(length=16), nullable=False),
        sa.Column('gross_weight', sa.Numeric(10, 3), nullable=True),
        sa.Column('net_weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('wastage_percent', sa.Numeric(5, 2), nullable=False),
        sa.Column('making_charges', sa.Numeric(12, 2), nullable=False),
        sa.Column('stone_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('reorder_level', sa.Integer(), nullable=False),
        sa.Column('huid', sa.String(length=16), nullable=True),
        sa.Column('lifecycle', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_products_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('shop_id', 'sku', name='uq_products_shop_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_shop_id', 'products', ['shop_id'])
    op.create_index('ix_products_lifecycle', 'products', ['lifecycle'])
    op.create_index('ix_products_shop_metal_purity', 'products', ['shop_id', 'metal_type', 'purity'])

    op.create_table(
        'rate_master',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('purity', sa.String(length=16), nullable=False),
        sa.Column('rate_per_gram', sa.Numeric(12, 2), nullable=False),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rate_source', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('default_making_charge_percent', sa.Numeric(5, 2), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_rate_master_shop_id_shops'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_rate_master_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_rate_master'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_rate_master_shop_id', 'rate_master', ['shop_id'])
    op.create_index('ix_rate_master_lookup', 'rate_master', ['shop_id', 'metal_type', 'purity', 'is_active'])

    # ============================================================================
    # Stock and sales
    # ============================================================================
    op.create_table(
        'stock_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('tag_id', sa.String(length=64), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('purchase_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sales_order_line_id', sa.Integer(), nullable=True),
        sa.Column('lifecycle', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_stock_items_shop_id_shops'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_stock_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_stock_items'),
        sa.UniqueConstraint('shop_id', 'tag_id', name='uq_stock_items_shop_tag'),
        sa.UniqueConstraint('shop_id', 'barcode', name='uq_stock_items_shop_barcode'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_items_shop_id', 'stock_items', ['shop_id'])
    op.create_index('ix_stock_items_product_id', 'stock_items', ['product_id'])
    op.create_index('ix_stock_items_status', 'stock_items', ['status'])
    op.create_index('ix_stock_items_lifecycle', 'stock_items', ['lifecycle'])
    op.create_index('ix_stock_items_sales_order_line_id', 'stock_items', ['sales_order_line_id'])
    op.create_index('ix_stock_items_product_status', 'stock_items', ['product_id', 'status'])

    op.create_table(
        'sales_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('order_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('final_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('lifecycle', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_sales_orders_shop_id_shops'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_sales_orders_customer_id_customers'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_sales_orders_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_sales_orders'),
        sa.UniqueConstraint('shop_id', 'invoice_number', name='uq_sales_orders_shop_invoice'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_orders_shop_id', 'sales_orders', ['shop_id'])
    op.create_index('ix_sales_orders_customer_id', 'sales_orders', ['customer_id'])
    op.create_index('ix_sales_orders_payment_status', 'sales_orders', ['payment_status'])
    op.create_index('ix_sales_orders_status', 'sales_orders', ['status'])
    op.create_index('ix_sales_orders_lifecycle', 'sales_orders', ['lifecycle'])
    op.create_index('ix_sales_orders_shop_status_date', 'sales_orders', ['shop_id', 'status', 'order_date'])

    op.create_table(
        'sales_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('stock_item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('rate_id', sa.Integer(), nullable=True),
        sa.Column('metal_rate_per_gram', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], name='fk_sales_order_lines_sales_order_id_sales_orders'),
        sa.ForeignKeyConstraint(['stock_item_id'], ['stock_items.id'], name='fk_sales_order_lines_stock_item_id_stock_items'),
        sa.ForeignKeyConstraint(['rate_id'], ['rate_master.id'], name='fk_sales_order_lines_rate_id_rate_master'),
        sa.PrimaryKeyConstraint('id', name='pk_sales_order_lines'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_order_lines_sales_order_id', 'sales_order_lines', ['sales_order_id'])
    op.create_index('ix_sales_order_lines_stock_item_id', 'sales_order_lines', ['stock_item_id'])

    with op.batch_alter_table('stock_items') as batch_op:
        batch_op.create_foreign_key(
            'fk_stock_items_sales_order_line',
            'sales_order_lines',
            ['sales_order_line_id'],
            ['id'],
        )

    op.create_table(
        'sales_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('idempotency_key', sa.String(length=128), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], name='fk_sales_payments_sales_order_id_sales_orders'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_sales_payments_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_sales_payments'),
        sa.UniqueConstraint('sales_order_id', 'idempotency_key', name='uq_sales_payments_order_key'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_payments_sales_order_id', 'sales_payments', ['sales_order_id'])

    # ============================================================================
    # EMI
    # ============================================================================
    op.create_table(
        'emi_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('principal_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('interest_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('number_of_installments', sa.Integer(), nullable=False),
        sa.Column('installment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_payable', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('remaining_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('emi_start_date', sa.Date(), nullable=False),
        sa.Column('next_installment_date', sa.Date(), nullable=True),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_installment', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('lifecycle', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_emi_payments_shop_id_shops'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_emi_payments_customer_id_customers'),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], name='fk_emi_payments_sales_order_id_sales_orders'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_emi_payments_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_emi_payments'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_emi_payments_shop_id', 'emi_payments', ['shop_id'])
    op.create_index('ix_emi_payments_customer_id', 'emi_payments', ['customer_id'])
    op.create_index('ix_emi_payments_sales_order_id', 'emi_payments', ['sales_order_id'])
    op.create_index('ix_emi_payments_status', 'emi_payments', ['status'])
    op.create_index('ix_emi_payments_lifecycle', 'emi_payments', ['lifecycle'])
    op.create_index('ix_emi_payments_shop_status', 'emi_payments', ['shop_id', 'status'])

    op.create_table(
        'emi_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emi_payment_id', sa.Integer(), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_mode', sa.String(length=32), nullable=True),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['emi_payment_id'], ['emi_payments.id'], name='fk_emi_installments_emi_payment_id_emi_payments'),
        sa.PrimaryKeyConstraint('id', name='pk_emi_installments'),
        sa.UniqueConstraint('emi_payment_id', 'installment_number', name='uq_emi_installments_plan_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_emi_installments_emi_payment_id', 'emi_installments', ['emi_payment_id'])
    op.create_index('ix_emi_installments_status_due', 'emi_installments', ['status', 'due_date'])

    # ============================================================================
    # Ledger and audit
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_mode', sa.String(length=32), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('sales_payment_id', sa.Integer(), nullable=True),
        sa.Column('emi_installment_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_transactions_shop_id_shops'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_transactions_customer_id_customers'),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], name='fk_transactions_sales_order_id_sales_orders'),
        sa.ForeignKeyConstraint(['sales_payment_id'], ['sales_payments.id'], name='fk_transactions_sales_payment_id_sales_payments'),
        sa.ForeignKeyConstraint(['emi_installment_id'], ['emi_installments.id'], name='fk_transactions_emi_installment_id_emi_installments'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], name='fk_transactions_created_by_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_transactions'),
        sa.UniqueConstraint('sales_payment_id', name='uq_transactions_sales_payment_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transactions_shop_id', 'transactions', ['shop_id'])
    op.create_index('ix_transactions_transaction_type', 'transactions', ['transaction_type'])
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])
    op.create_index('ix_transactions_sales_order_id', 'transactions', ['sales_order_id'])
    op.create_index('ix_transactions_emi_installment_id', 'transactions', ['emi_installment_id'])
    op.create_index('ix_transactions_shop_date', 'transactions', ['shop_id', 'transaction_date'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('module', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_audit_logs_shop_id_shops'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_audit_logs_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_audit_logs_shop_id', 'audit_logs', ['shop_id'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_shop_occurred', 'audit_logs', ['shop_id', 'occurred_at'])
    op.create_index('ix_audit_logs_module_entity', 'audit_logs', ['module', 'entity_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('transactions')
    op.drop_table('emi_installments')
    op.drop_table('emi_payments')
    op.drop_table('sales_payments')
    with op.batch_alter_table('stock_items') as batch_op:
        batch_op.drop_constraint('fk_stock_items_sales_order_line', type_='foreignkey')
    op.drop_table('sales_order_lines')
    op.drop_table('sales_orders')
    op.drop_table('stock_items')
    op.drop_table('rate_master')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('shops')

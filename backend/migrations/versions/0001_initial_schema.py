"""initial schema: admins, catalog, ledgers, requests, sales, invoices

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')
MONEY = sa.Numeric(12, 2)


def upgrade():
    op.create_table('admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('reset_token', sa.String(length=128), nullable=True),
        sa.Column('reset_token_expiry', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint("role IN ('super-admin', 'sub-admin')", name='ck_admin_role'),
    )
    op.create_index('ix_admins_email', 'admins', ['email'])
    op.create_index('ix_admins_reset_token', 'admins', ['reset_token'])

    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('photo', sa.String(length=512), nullable=True),
        sa.Column('price_base', MONEY, nullable=False),
        sa.Column('price_lowest_selling', MONEY, nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Active'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        sa.CheckConstraint('price_base >= 0 AND price_lowest_selling >= 0', name='ck_product_price_non_negative'),
        sa.CheckConstraint('price_lowest_selling <= price_base', name='ck_product_lowest_le_base'),
    )
    op.create_index('ix_products_title', 'products', ['title'])
    op.create_index('ix_products_status', 'products', ['status'])

    op.create_table('employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('gender', sa.String(length=8), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False),
        sa.Column('date_of_joining', sa.Date(), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('profile_photo', sa.String(length=512), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Offline'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('holdings_cash', MONEY, nullable=False, server_default='0'),
        sa.Column('holdings_online', MONEY, nullable=False, server_default='0'),
        sa.Column('holdings_total', MONEY, nullable=False, server_default='0'),
        sa.Column('otp_hash', sa.String(length=255), nullable=True),
        sa.Column('otp_expiry', sa.DateTime(timezone=True), nullable=True),
        sa.Column('otp_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('holdings_cash >= 0', name='ck_employee_cash_non_negative'),
        sa.CheckConstraint('holdings_online >= 0', name='ck_employee_online_non_negative'),
        sa.CheckConstraint('ABS(holdings_total - holdings_cash - holdings_online) < 0.005', name='ck_employee_holdings_total'),
        sa.CheckConstraint('age >= 18 AND age <= 100', name='ck_employee_age'),
    )
    op.create_index('ix_employees_full_name', 'employees', ['full_name'])
    op.create_index('ix_employees_email', 'employees', ['email'])

    op.create_table('employee_products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.UniqueConstraint('employee_id', 'product_id', name='uq_employee_product'),
        sa.CheckConstraint('quantity >= 0', name='ck_allocation_quantity'),
    )
    op.create_index('ix_employee_products_employee_id', 'employee_products', ['employee_id'])

    op.create_table('stock_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('quantity >= 1', name='ck_stock_request_quantity'),
    )
    op.create_index('ix_stock_requests_employee_id', 'stock_requests', ['employee_id'])
    op.create_index('ix_stock_requests_status', 'stock_requests', ['status'])
    op.create_index('ix_stock_requests_created_at', 'stock_requests', ['created_at'])

    op.create_table('money_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('method', sa.String(length=8), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('amount >= 1', name='ck_money_request_amount'),
        sa.CheckConstraint("method IN ('Cash', 'Online')", name='ck_money_request_method'),
    )
    op.create_index('ix_money_requests_employee_id', 'money_requests', ['employee_id'])
    op.create_index('ix_money_requests_status', 'money_requests', ['status'])
    op.create_index('ix_money_requests_created_at', 'money_requests', ['created_at'])

    op.create_table('sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('customer_email', sa.String(length=128), nullable=True),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('payment_method', sa.String(length=8), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('total_amount >= 0', name='ck_sale_total'),
    )
    op.create_index('ix_sales_employee_id', 'sales', ['employee_id'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_title', sa.String(length=128), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_unit', MONEY, nullable=False),
        sa.Column('total_price', MONEY, nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_sale_item_quantity'),
        sa.CheckConstraint('price_per_unit >= 0', name='ck_sale_item_price'),
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])

    op.create_table('counters',
        sa.Column('name', sa.String(length=64), primary_key=True),
        sa.Column('seq', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table('invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('date_of_issue', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('customer_city', sa.String(length=64), nullable=True),
        sa.Column('customer_state', sa.String(length=64), nullable=True),
        sa.Column('customer_pincode', sa.String(length=16), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('customer_email', sa.String(length=128), nullable=True),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('tax_rate', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('amount_due', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Draft'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint('subtotal >= 0', name='ck_invoice_subtotal'),
        sa.CheckConstraint('tax_rate >= 0 AND discount >= 0', name='ck_invoice_tax_discount'),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'])

    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_invoice_item_quantity'),
        sa.CheckConstraint('unit_price >= 0', name='ck_invoice_item_price'),
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_admin_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('role_snapshot', sa.String(length=16), nullable=True),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_admin_id', 'audit_logs', ['actor_admin_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for table in (
        'audit_logs', 'invoice_items', 'invoices', 'counters', 'sale_items', 'sales',
        'money_requests', 'stock_requests', 'employee_products', 'employees', 'products', 'admins',
    ):
        op.drop_table(table)

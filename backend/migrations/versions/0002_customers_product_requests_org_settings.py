"""customers, product requests and organization settings

Revision ID: 0002_customer_requests
Revises: 0001_initial_schema
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_customer_requests'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')


def upgrade():
    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('device_id', sa.String(length=128), nullable=True, unique=True),
        sa.Column('email', sa.String(length=128), nullable=True, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('auth_type', sa.String(length=16), nullable=False, server_default='guest'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint("auth_type IN ('guest', 'registered')", name='ck_customer_auth_type'),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index('ix_customers_name', 'customers', ['name'])
    op.create_index('ix_customers_auth_type', 'customers', ['auth_type'])
    op.create_index('ix_customers_created_at', 'customers', ['created_at'])

    op.create_table('product_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('customer_email', sa.String(length=128), nullable=True),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint("status IN ('pending', 'ongoing', 'delivered')", name='ck_product_request_status'),
    )
    op.create_index('ix_product_requests_customer_id', 'product_requests', ['customer_id'])
    op.create_index('ix_product_requests_status', 'product_requests', ['status'])
    op.create_index('ix_product_requests_customer_name', 'product_requests', ['customer_name'])
    op.create_index('ix_product_requests_created_at', 'product_requests', ['created_at'])

    op.create_table('product_request_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('product_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_title', sa.String(length=128), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_product_request_item_quantity'),
    )
    op.create_index('ix_product_request_items_request_id', 'product_request_items', ['request_id'])

    op.create_table('product_request_notes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('product_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('by', sa.String(length=16), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint("by IN ('admin', 'customer')", name='ck_product_request_note_by'),
    )
    op.create_index('ix_product_request_notes_request_id', 'product_request_notes', ['request_id'])

    op.create_table('organization_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('company_name', sa.String(length=128), nullable=False),
        sa.Column('logo', sa.String(length=512), nullable=True),
        sa.Column('address_street', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('address_city', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('address_state', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('address_pincode', sa.String(length=16), nullable=False, server_default=''),
        sa.Column('address_country', sa.String(length=64), nullable=False, server_default='India'),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=128), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('pan', sa.String(length=16), nullable=True),
        sa.Column('bank_account_name', sa.String(length=128), nullable=True),
        sa.Column('bank_account_number', sa.String(length=64), nullable=True),
        sa.Column('bank_name', sa.String(length=128), nullable=True),
        sa.Column('bank_ifsc_code', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
    )


def downgrade():
    for table in (
        'organization_settings', 'product_request_notes', 'product_request_items', 'product_requests', 'customers',
    ):
        op.drop_table(table)

"""initial daily sales reporting schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-15
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table('stores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_code', sa.String(length=10), nullable=False, unique=True),
        sa.Column('store_name', sa.String(length=128), nullable=False),
        sa.Column('address', sa.String(length=255)),
        sa.Column('phone', sa.String(length=32)),
        sa.Column('manager_id', sa.Integer()),
        sa.Column('petty_cash_limit_cents', sa.Integer(), nullable=False, server_default='500000'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
    )
    op.create_index('ix_stores_store_code', 'stores', ['store_code'])
    op.create_index('ix_stores_is_active', 'stores', ['is_active'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255)),
        sa.Column('password_hash', sa.String(length=255)),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id')),
        sa.Column('authentication_type', sa.String(length=16), nullable=False, server_default='local'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('last_login_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_store_id', 'users', ['store_id'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), unique=True),
        sa.Column('email', sa.String(length=255)),
        sa.Column('address', sa.Text()),
        sa.Column('credit_limit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_outstanding_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        *_timestamps(),
    )
    op.create_index('ix_customers_customer_name', 'customers', ['customer_name'])

    op.create_table('sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('tender_type', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('transaction_reference', sa.String(length=64)),
        sa.Column('customer_reference', sa.String(length=128)),
        sa.Column('notes', sa.Text()),
        sa.Column('entered_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('approval_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.Column('approval_notes', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_sales_store_id', 'sales', ['store_id'])
    op.create_index('ix_sales_sale_date', 'sales', ['sale_date'])
    op.create_index('ix_sales_approval_status', 'sales', ['approval_status'])
    op.create_index('ix_sales_store_date', 'sales', ['store_id', 'sale_date'])

    op.create_table('expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='petty_cash'),
        sa.Column('voucher_number', sa.String(length=64)),
        sa.Column('receipt_number', sa.String(length=64)),
        sa.Column('expense_owner', sa.String(length=128)),
        sa.Column('notes', sa.Text()),
        sa.Column('requested_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('approval_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.Column('approval_notes', sa.Text()),
        *_timestamps(),
    )
    op.create_index('ix_expenses_store_id', 'expenses', ['store_id'])
    op.create_index('ix_expenses_expense_date', 'expenses', ['expense_date'])
    op.create_index('ix_expenses_approval_status', 'expenses', ['approval_status'])
    op.create_index('ix_expenses_store_date', 'expenses', ['store_id', 'expense_date'])

    op.create_table('hand_bills',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('bill_number', sa.String(length=32), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id')),
        sa.Column('customer_name', sa.String(length=128)),
        sa.Column('items_description', sa.Text()),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32)),
        sa.Column('original_image_url', sa.String(length=512)),
        sa.Column('sale_bill_image_url', sa.String(length=512)),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('erp_sale_bill_number', sa.String(length=64)),
        sa.Column('conversion_date', sa.DateTime(timezone=True)),
        sa.Column('converted_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('conversion_notes', sa.Text()),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('cancelled_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'bill_number', name='uq_hand_bill_store_number'),
    )
    op.create_index('ix_hand_bills_store_id', 'hand_bills', ['store_id'])
    op.create_index('ix_hand_bills_sale_date', 'hand_bills', ['sale_date'])
    op.create_index('ix_hand_bills_status', 'hand_bills', ['status'])

    op.create_table('sales_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('items_description', sa.Text(), nullable=False),
        sa.Column('total_estimated_amount_cents', sa.Integer(), nullable=False),
        sa.Column('advance_paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_date', sa.Date()),
        sa.Column('notes', sa.Text()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('erp_sale_bill_number', sa.String(length=64)),
        sa.Column('conversion_date', sa.DateTime(timezone=True)),
        sa.Column('converted_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('conversion_notes', sa.Text()),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('cancelled_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('store_id', 'order_number', name='uq_sales_order_store_number'),
    )
    op.create_index('ix_sales_orders_store_id', 'sales_orders', ['store_id'])
    op.create_index('ix_sales_orders_order_date', 'sales_orders', ['order_date'])
    op.create_index('ix_sales_orders_status', 'sales_orders', ['status'])

    op.create_table('gift_vouchers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('voucher_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('voucher_type', sa.String(length=16), nullable=False, server_default='gift'),
        sa.Column('original_amount_cents', sa.Integer(), nullable=False),
        sa.Column('current_balance_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('issued_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('customer_name', sa.String(length=128)),
        sa.Column('customer_phone', sa.String(length=32)),
        sa.Column('issued_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(timezone=True)),
        sa.Column('redeemed_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('cancelled_by', sa.Integer(), sa.ForeignKey('users.id')),
        *_timestamps(),
        sa.CheckConstraint('current_balance_cents >= 0 AND current_balance_cents <= original_amount_cents', name='ck_voucher_balance'),
    )
    op.create_index('ix_gift_vouchers_voucher_number', 'gift_vouchers', ['voucher_number'])
    op.create_index('ix_gift_vouchers_store_id', 'gift_vouchers', ['store_id'])
    op.create_index('ix_gift_vouchers_status', 'gift_vouchers', ['status'])
    op.create_index('ix_gift_vouchers_expiry_date', 'gift_vouchers', ['expiry_date'])

    op.create_table('returns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('return_date', sa.Date(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id')),
        sa.Column('original_bill_reference', sa.String(length=64)),
        sa.Column('return_amount_cents', sa.Integer(), nullable=False),
        sa.Column('return_reason', sa.Text(), nullable=False),
        sa.Column('payment_method', sa.String(length=32)),
        sa.Column('rrn', sa.String(length=64)),
        sa.Column('notes', sa.Text()),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_returns_store_id', 'returns', ['store_id'])
    op.create_index('ix_returns_return_date', 'returns', ['return_date'])
    op.create_index('ix_returns_original_bill_reference', 'returns', ['original_bill_reference'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_role', sa.String(length=32)),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('store_id', sa.Integer()),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_store_id', 'audit_logs', ['store_id'])


def downgrade():
    for table in ('audit_logs', 'returns', 'gift_vouchers', 'sales_orders', 'hand_bills',
                  'expenses', 'sales', 'customers', 'users', 'stores'):
        op.drop_table(table)

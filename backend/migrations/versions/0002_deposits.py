"""add sales order and ad-hoc deposits

Revision ID: 0002_deposits
Revises: 0001_initial
Create Date: 2025-02-03
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = '0002_deposits'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    insp = inspect(op.get_bind())
    if insp.has_table('deposits'):
        return
    op.create_table('deposits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('deposit_date', sa.Date(), nullable=False),
        sa.Column('deposit_type', sa.String(length=16), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), sa.ForeignKey('sales_orders.id')),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id')),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_deposits_store_id', 'deposits', ['store_id'])
    op.create_index('ix_deposits_deposit_date', 'deposits', ['deposit_date'])
    op.create_index('ix_deposits_deposit_type', 'deposits', ['deposit_type'])
    op.create_index('ix_deposits_sales_order_id', 'deposits', ['sales_order_id'])
    op.create_index('ix_deposits_customer_id', 'deposits', ['customer_id'])


def downgrade():
    op.drop_table('deposits')

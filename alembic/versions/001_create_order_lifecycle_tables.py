"""Create order lifecycle tables

Revision ID: 001_order_lifecycle
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_order_lifecycle'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create users, stores, catalog, address book, cart and order tables"""

    # ====================
    # USERS / STORES
    # ====================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('username', sa.String(100), unique=True, nullable=False),
        sa.Column('role', sa.String(20), server_default='BUYER', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'stores',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_stores_owner_id', 'stores', ['owner_id'])

    # ====================
    # CATALOG / INVENTORY
    # ====================
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('store_id', sa.Uuid(), sa.ForeignKey('stores.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock', sa.Integer, server_default='0', nullable=False),
        sa.Column('sales', sa.Integer, server_default='0', nullable=False),
        sa.Column('status', sa.String(20), server_default='LISTED', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('sales >= 0', name='ck_products_sales_non_negative'),
    )
    op.create_index('ix_product_store_status', 'products', ['store_id', 'status'])

    # ====================
    # ADDRESS BOOK / CART
    # ====================
    op.create_table(
        'addresses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_name', sa.String(100), nullable=False),
        sa.Column('receiver_phone', sa.String(20), nullable=False),
        sa.Column('province', sa.String(100), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('district', sa.String(100), nullable=True),
        sa.Column('detail_address', sa.String(500), nullable=False),
        sa.Column('is_default', sa.Boolean, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer, server_default='1', nullable=False),
        sa.Column('specification', sa.String(255), nullable=True),
        sa.Column('selected', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    # ====================
    # ORDERS
    # ====================
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_number', sa.String(32), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('store_id', sa.Uuid(), sa.ForeignKey('stores.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('line_items', sa.JSON, nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_snapshot', sa.JSON, nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('payment_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipping_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Integer, server_default='0', nullable=False),
        sa.Column('refund_reason', sa.Text, nullable=True),
        sa.Column('remark', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
    )
    op.create_index('ix_order_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('ix_order_store_created', 'orders', ['store_id', 'created_at'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('from_status', sa.Integer, nullable=True),
        sa.Column('to_status', sa.Integer, nullable=False),
        sa.Column('changed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])


def downgrade():
    """Drop order lifecycle tables"""
    op.drop_table('order_status_history')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('addresses')
    op.drop_table('products')
    op.drop_table('stores')
    op.drop_table('users')

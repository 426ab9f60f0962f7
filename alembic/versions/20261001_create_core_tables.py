"""create_core_tables

Revision ID: 20261001_core
Revises:
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20261001_core'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name):
    """Check if a table exists in the database"""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade():
    if not table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('role', sa.String(), nullable=False),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    if not table_exists('shopify_connections'):
        op.create_table(
            'shopify_connections',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('admin_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('shop_domain', sa.String(), nullable=False),
            sa.Column('access_token_encrypted', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )
        op.create_index('idx_shopify_connections_admin', 'shopify_connections', ['admin_id'])

    if not table_exists('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('order_number', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('driver_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('created_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('customer_name', sa.String(), nullable=True),
            sa.Column('delivery_address', sa.Text(), nullable=True),
            sa.Column('shopify_connection_id', sa.String(), sa.ForeignKey('shopify_connections.id'), nullable=True),
            sa.Column('shopify_order_id', sa.String(), nullable=True),
            sa.Column('shopify_fulfillment_id', sa.String(), nullable=True),
            sa.Column('shopify_fulfilled_at', sa.DateTime(), nullable=True),
            sa.Column('photo_url', sa.Text(), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        )
        op.create_index('idx_orders_driver', 'orders', ['driver_id'])
        op.create_index('idx_orders_status', 'orders', ['status'])
        op.create_index('idx_orders_created_by', 'orders', ['created_by'])

    if not table_exists('notifications'):
        op.create_table(
            'notifications',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('type', sa.String(), nullable=False, server_default='info'),
            sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )
        op.create_index('idx_notifications_user', 'notifications', ['user_id', 'read'])


def downgrade():
    for table in ('notifications', 'orders', 'shopify_connections', 'users'):
        if table_exists(table):
            op.drop_table(table)

"""create_pod_tables

Revision ID: 20261019_pod
Revises: 20261001_core
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20261019_pod'
down_revision: Union[str, Sequence[str], None] = '20261001_core'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name):
    """Check if a table exists in the database"""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def index_exists(table_name, index_name):
    """Check if an index exists on a table"""
    bind = op.get_bind()
    inspector = inspect(bind)
    indexes = inspector.get_indexes(table_name)
    return any(idx['name'] == index_name for idx in indexes)


def upgrade():
    # 1. Proof of delivery (one per order)
    if not table_exists('proof_of_delivery'):
        op.create_table(
            'proof_of_delivery',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
            sa.Column('driver_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('delivery_timestamp', sa.DateTime(), nullable=False),
            sa.Column('recipient_name', sa.String(), nullable=False),
            sa.Column('recipient_signature', sa.Text(), nullable=True),
            sa.Column('delivery_notes', sa.Text(), nullable=True),
            sa.Column('location_latitude', sa.Float(), nullable=True),
            sa.Column('location_longitude', sa.Float(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.UniqueConstraint('order_id', name='uq_proof_of_delivery_order'),
        )

    if table_exists('proof_of_delivery'):
        if not index_exists('proof_of_delivery', 'idx_pod_driver'):
            op.create_index('idx_pod_driver', 'proof_of_delivery', ['driver_id'])

    # 2. POD photos
    if not table_exists('pod_photos'):
        op.create_table(
            'pod_photos',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('pod_id', sa.String(), sa.ForeignKey('proof_of_delivery.id', ondelete='CASCADE'), nullable=False),
            sa.Column('photo_url', sa.Text(), nullable=False),
            sa.Column('photo_type', sa.String(), nullable=False, server_default='delivery'),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('file_size', sa.Integer(), nullable=True),
            sa.Column('mime_type', sa.String(), nullable=True),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    if table_exists('pod_photos'):
        if not index_exists('pod_photos', 'idx_pod_photos_pod'):
            op.create_index('idx_pod_photos_pod', 'pod_photos', ['pod_id', 'created_at'])

    # 3. Delivery failures (one per order)
    if not table_exists('delivery_failures'):
        op.create_table(
            'delivery_failures',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
            sa.Column('driver_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('failure_reason', sa.String(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('attempted_delivery', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('contacted_customer', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('left_at_location', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('reschedule_requested', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('reschedule_date', sa.DateTime(), nullable=True),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('photos', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.UniqueConstraint('order_id', name='uq_delivery_failures_order'),
        )

    if table_exists('delivery_failures'):
        if not index_exists('delivery_failures', 'idx_delivery_failures_driver'):
            op.create_index('idx_delivery_failures_driver', 'delivery_failures', ['driver_id'])

    # 4. Order updates (append-only audit trail)
    if not table_exists('order_updates'):
        op.create_table(
            'order_updates',
            sa.Column('id', sa.String(), primary_key=True),
            sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
            sa.Column('driver_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('notes', sa.Text(), nullable=True),
            sa.Column('photo_url', sa.Text(), nullable=True),
            sa.Column('latitude', sa.Float(), nullable=True),
            sa.Column('longitude', sa.Float(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    if table_exists('order_updates'):
        if not index_exists('order_updates', 'idx_order_updates_order'):
            op.create_index('idx_order_updates_order', 'order_updates', ['order_id', 'created_at'])


def downgrade():
    if table_exists('order_updates'):
        op.drop_table('order_updates')
    if table_exists('delivery_failures'):
        op.drop_table('delivery_failures')
    if table_exists('pod_photos'):
        op.drop_table('pod_photos')
    if table_exists('proof_of_delivery'):
        op.drop_table('proof_of_delivery')

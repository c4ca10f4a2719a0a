"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('role', sa.String(20), default='STAFF'),  # UserRole member name
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('refresh_token', sa.String(500)),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create inventory_items table
    op.create_table(
        'inventory_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('cost', sa.Integer()),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(100)),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('stock >= 0', name='ck_inventory_items_stock_non_negative'),
    )

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('customer_json', sa.JSON(), nullable=False),
        sa.Column('items_json', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('payment_mode', sa.String(10), nullable=False),
        sa.Column('payment_reference', sa.String(100)),
        sa.Column('delivery_code', sa.String(4)),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('feedback_json', sa.JSON()),
        sa.Column('settings_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create pending_commits table
    op.create_table(
        'pending_commits',
        sa.Column('order_id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(100), nullable=False),
        sa.Column('customer_json', sa.JSON(), nullable=False),
        sa.Column('items_json', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('settings_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_state', sa.String(20)),
        sa.Column('last_checked_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )

    # Create push_subscriptions table
    op.create_table(
        'push_subscriptions',
        sa.Column('endpoint', sa.String(1024), primary_key=True),
        sa.Column('keys_json', sa.JSON(), nullable=False),
        sa.Column('user_id', sa.String(100), nullable=False, server_default='unknown'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create store_settings table
    op.create_table(
        'store_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('delivery_mode', sa.String(10), nullable=False, server_default='now'),
        sa.Column('delivery_message', sa.String(255)),
        sa.Column('cod_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_orders_customer_phone', 'orders', ['customer_phone'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_pending_commits_expires_at', 'pending_commits', ['expires_at'])
    op.create_index('ix_push_subscriptions_user_id', 'push_subscriptions', ['user_id'])


def downgrade() -> None:
    op.drop_table('store_settings')
    op.drop_table('push_subscriptions')
    op.drop_table('pending_commits')
    op.drop_table('orders')
    op.drop_table('inventory_items')
    op.drop_table('users')

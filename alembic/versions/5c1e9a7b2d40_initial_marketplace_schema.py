"""initial marketplace schema

Revision ID: 5c1e9a7b2d40
Revises:
Create Date: 2026-10-19 ...

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '5c1e9a7b2d40'
down_revision = None
branch_labels = None
depends_on = None

store_status_enum = sa.Enum('active', 'suspended', 'closed', name='storestatus')
member_role_enum = sa.Enum('owner', 'admin', 'manager', 'staff', 'custom', name='memberrole')
access_level_enum = sa.Enum('view', 'view_and_buy', name='accesslevel')
order_status_enum = sa.Enum(
    'pending', 'confirmed', 'processing', 'shipped', 'delivered', 'cancelled', name='orderstatus'
)
payment_status_enum = sa.Enum('pending', 'paid', 'failed', 'refunded', name='paymentstatus')

money = sa.Numeric(10, 2)
json_type = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('status', store_status_enum, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_stores_id', 'stores', ['id'])
    op.create_index('ix_stores_owner_id', 'stores', ['owner_id'])
    op.create_index('ix_stores_slug', 'stores', ['slug'], unique=True)
    op.create_index('ix_stores_is_private', 'stores', ['is_private'])

    op.create_table(
        'store_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', member_role_enum, nullable=False),
        sa.Column('permissions', json_type, nullable=False),
        sa.Column('invited_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('store_id', 'user_id', name='uq_store_member'),
    )
    op.create_index('ix_store_members_id', 'store_members', ['id'])
    op.create_index('ix_store_members_store_id', 'store_members', ['store_id'])
    op.create_index('ix_store_members_user_id', 'store_members', ['user_id'])

    op.create_table(
        'store_access_grants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('granted_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('access_level', access_level_enum, nullable=False),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_store_access_grants_id', 'store_access_grants', ['id'])
    op.create_index('ix_store_access_grants_store_id', 'store_access_grants', ['store_id'])
    op.create_index('ix_store_access_grants_user_id', 'store_access_grants', ['user_id'])
    # at most one non-revoked grant per store/user
    op.create_index(
        'uq_active_access_grant',
        'store_access_grants',
        ['store_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text('is_revoked = false'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', money, nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('store_id', 'sku', name='uq_store_sku'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_store_id', 'products', ['store_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_user_product'),
    )
    op.create_index('ix_cart_items_id', 'cart_items', ['id'])
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    op.create_table(
        'order_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('group_number', sa.String(50), nullable=False, unique=True),
        sa.Column('total_amount', money, nullable=False),
        sa.Column('payment_status', payment_status_enum, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_order_groups_id', 'order_groups', ['id'])
    op.create_index('ix_order_groups_user_id', 'order_groups', ['user_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_group_id', sa.Integer(), sa.ForeignKey('order_groups.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False, unique=True),
        sa.Column('status', order_status_enum, nullable=False),
        sa.Column('subtotal', money, nullable=False),
        sa.Column('tax', money, nullable=False),
        sa.Column('discount', money, nullable=False),
        sa.Column('shipping_cost', money, nullable=False),
        sa.Column('total_amount', money, nullable=False),
        sa.Column('shipping_address', json_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_order_group_id', 'orders', ['order_group_id'])
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_store_id', 'orders', ['store_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', money, nullable=False),
        sa.Column('subtotal', money, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_product'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'idempotency_keys',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key_hash', sa.String(64), nullable=False),
        sa.Column('response_payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_idempotency_keys_id', 'idempotency_keys', ['id'])
    op.create_index('ix_idempotency_keys_key_hash', 'idempotency_keys', ['key_hash'], unique=True)


def downgrade() -> None:
    op.drop_table('idempotency_keys')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('order_groups')
    op.drop_table('cart_items')
    op.drop_table('products')
    op.drop_table('store_access_grants')
    op.drop_table('store_members')
    op.drop_table('stores')
    op.drop_table('users')

    # Drop the ENUM types last
    bind = op.get_bind()
    for enum_type in (
        payment_status_enum,
        order_status_enum,
        access_level_enum,
        member_role_enum,
        store_status_enum,
    ):
        enum_type.drop(bind, checkfirst=True)

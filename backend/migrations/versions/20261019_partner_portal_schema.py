"""Partner portal schema: locations, order/booking tables, catalogue stock

Revision ID: 20261019_partner_portal
Revises:
Create Date: 2026-10-19

This migration adds:
1. restaurants, stores, store_members (partner location scope)
2. restaurant_table_orders, restaurant_orders, store_orders, restaurant_bookings
3. store_catalogue_items and store_catalogue_stock_movements (append-only audit)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_partner_portal'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('(CURRENT_TIMESTAMP)')


def _order_columns():
    """Columns every partner-facing order/booking table carries."""
    return [
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. LOCATIONS
    # ==========================================================================
    op.create_table('restaurants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('restaurants', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_restaurants_owner_user_id'), ['owner_user_id'], unique=False)
        batch_op.create_index('ix_restaurants_owner_name', ['owner_user_id', 'name'], unique=False)

    op.create_table('stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stores', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stores_owner_user_id'), ['owner_user_id'], unique=False)
        batch_op.create_index('ix_stores_owner_name', ['owner_user_id', 'name'], unique=False)

    op.create_table('store_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='staff'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'user_id', name='uq_store_members_store_user'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_members', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_members_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_members_user_id'), ['user_id'], unique=False)

    # ==========================================================================
    # 2. ORDERS AND BOOKINGS
    # ==========================================================================
    op.create_table('restaurant_table_orders',
        *_order_columns(),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('table_label', sa.String(length=32), nullable=True),
        sa.Column('order_code', sa.String(length=32), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PLACED'),
        sa.Column('partner_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('preparing_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ready_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('restaurant_table_orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_restaurant_table_orders_restaurant_id'), ['restaurant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_table_orders_order_code'), ['order_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_table_orders_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_table_orders_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_table_orders_restaurant_status', ['restaurant_id', 'status'], unique=False)

    op.create_table('restaurant_orders',
        *_order_columns(),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('pickup_code', sa.String(length=16), nullable=True),
        sa.Column('pickup_eta', sa.DateTime(timezone=True), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('order_status', sa.String(length=24), nullable=False, server_default='NEW'),
        sa.Column('partner_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('preparing_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ready_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('picked_up_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('restaurant_orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_restaurant_orders_restaurant_id'), ['restaurant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_orders_order_number'), ['order_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_orders_order_status'), ['order_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_orders_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_restaurant_orders_restaurant_status', ['restaurant_id', 'order_status'], unique=False)

    op.create_table('store_orders',
        *_order_columns(),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('order_no', sa.String(length=32), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_fee_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='NEW'),
        sa.Column('partner_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('preparing_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ready_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('store_orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_orders_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_orders_order_no'), ['order_no'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_orders_payment_status'), ['payment_status'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_orders_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_orders_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_store_orders_store_status', ['store_id', 'status'], unique=False)
        batch_op.create_index('ix_store_orders_store_payment', ['store_id', 'payment_status'], unique=False)

    op.create_table('restaurant_bookings',
        *_order_columns(),
        sa.Column('restaurant_id', sa.Integer(), nullable=False),
        sa.Column('customer_user_id', sa.String(length=64), nullable=True),
        sa.Column('booking_code', sa.String(length=32), nullable=True),
        sa.Column('customer_booking_number', sa.Integer(), nullable=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('booking_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='90'),
        sa.Column('party_size', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.Column('special_request', sa.Text(), nullable=True),
        sa.Column('notes_internal', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('no_show_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('restaurant_bookings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_restaurant_bookings_restaurant_id'), ['restaurant_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_bookings_booking_code'), ['booking_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_bookings_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_restaurant_bookings_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_bookings_restaurant_date', ['restaurant_id', 'booking_date', 'booking_time'], unique=False)

    # ==========================================================================
    # 3. CATALOGUE STOCK
    # ==========================================================================
    op.create_table('store_catalogue_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('track_inventory', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('stock_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('stock_status', sa.String(length=16), nullable=False, server_default='in_stock'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.CheckConstraint('stock_qty >= 0', name='ck_catalogue_items_stock_non_negative'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_catalogue_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_catalogue_items_store_id'), ['store_id'], unique=False)
        batch_op.create_index('ix_catalogue_items_store_title', ['store_id', 'title'], unique=False)

    op.create_table('store_catalogue_stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('qty_delta', sa.Integer(), nullable=False),
        sa.Column('qty_before', sa.Integer(), nullable=False),
        sa.Column('qty_after', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('actor_user_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.ForeignKeyConstraint(['item_id'], ['store_catalogue_items.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_catalogue_stock_movements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_catalogue_stock_movements_store_id'), ['store_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_catalogue_stock_movements_item_id'), ['item_id'], unique=False)
        batch_op.create_index('ix_stock_movements_store_item_created', ['store_id', 'item_id', 'created_at'], unique=False)


def downgrade():
    op.drop_table('store_catalogue_stock_movements')
    op.drop_table('store_catalogue_items')
    op.drop_table('restaurant_bookings')
    op.drop_table('store_orders')
    op.drop_table('restaurant_orders')
    op.drop_table('restaurant_table_orders')
    op.drop_table('store_members')
    op.drop_table('stores')
    op.drop_table('restaurants')

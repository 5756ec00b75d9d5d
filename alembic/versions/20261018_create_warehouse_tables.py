"""Create warehouse tables

Revision ID: 20261018_warehouse
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261018_warehouse'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True)


def _uuid(name, target=None, ondelete=None, **kwargs):
    if target:
        return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target, ondelete=ondelete), **kwargs)
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _ts(name, **kwargs):
    return sa.Column(name, sa.DateTime(timezone=True), **kwargs)


def upgrade() -> None:
    # ==================== Catalog, locations, users ====================
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(200)),
        sa.Column('role', sa.String(50), nullable=False, server_default='STAFF', comment='ADMIN, MANAGER, STAFF'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'products',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_products_sku', 'products', ['sku'])

    op.create_table(
        'product_variants',
        _id(),
        _uuid('product_id', 'products.id', 'CASCADE', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False, unique=True),
        sa.Column('upc', sa.String(50)),
        sa.Column('barcode', sa.String(100)),
        sa.Column('price', sa.Numeric(12, 2)),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])
    op.create_index('ix_product_variants_sku', 'product_variants', ['sku'])
    op.create_index('ix_product_variants_upc', 'product_variants', ['upc'])
    op.create_index('ix_product_variants_barcode', 'product_variants', ['barcode'])

    op.create_table(
        'locations',
        _id(),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('type', sa.String(50), nullable=False, server_default='STORAGE',
                  comment='STORAGE, PICKING, RECEIVING, PACKING, SHIPPING, RETURNS, QUARANTINE'),
        sa.Column('zone', sa.String(50)),
        sa.Column('aisle', sa.String(20)),
        sa.Column('shelf', sa.String(20)),
        sa.Column('bin', sa.String(20)),
        sa.Column('barcode', sa.String(100), unique=True),
        sa.Column('pick_sequence', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_locations_name', 'locations', ['name'])
    op.create_index('ix_locations_type', 'locations', ['type'])

    # ==================== Orders ====================
    op.create_table(
        'orders',
        _id(),
        sa.Column('order_number', sa.String(50), nullable=False, unique=True),
        sa.Column('external_order_id', sa.String(100)),
        sa.Column('customer_name', sa.String(200)),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, ALLOCATED, PICKING, PICKED, PACKED, SHIPPED, DELIVERED, CANCELLED, RETURNED'),
        sa.Column('total_amount', sa.Numeric(12, 2), server_default='0'),
        sa.Column('tracking_number', sa.String(100)),
        sa.Column('notes', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('updated_at', nullable=False, server_default=sa.func.now()),
        _ts('allocated_at'),
        _ts('shipped_at'),
        _ts('delivered_at'),
        _ts('cancelled_at'),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'])
    op.create_index('ix_orders_external_order_id', 'orders', ['external_order_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        _id(),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        _uuid('variant_id', 'product_variants.id', 'RESTRICT', nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), server_default='0'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_variant_id', 'order_items', ['variant_id'])

    op.create_table(
        'order_status_history',
        _id(),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        sa.Column('previous_status', sa.String(50)),
        sa.Column('new_status', sa.String(50), nullable=False),
        _uuid('changed_by', 'users.id', 'SET NULL'),
        sa.Column('notes', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # ==================== Inventory ====================
    op.create_table(
        'inventory',
        _id(),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        _uuid('location_id', 'locations.id', nullable=False),
        sa.Column('quantity_on_hand', sa.Integer, nullable=False, server_default='0'),
        sa.Column('quantity_reserved', sa.Integer, nullable=False, server_default='0'),
        _ts('last_counted_at'),
        _ts('created_at', server_default=sa.func.now()),
        _ts('updated_at', server_default=sa.func.now()),
        sa.UniqueConstraint('variant_id', 'location_id', name='uq_inventory_variant_location'),
        sa.CheckConstraint('quantity_on_hand >= 0', name='chk_inventory_on_hand_non_negative'),
        sa.CheckConstraint('quantity_reserved >= 0', name='chk_inventory_reserved_non_negative'),
        sa.CheckConstraint('quantity_reserved <= quantity_on_hand', name='chk_inventory_reserved_within_on_hand'),
    )
    op.create_index('ix_inventory_variant_id', 'inventory', ['variant_id'])
    op.create_index('ix_inventory_location_id', 'inventory', ['location_id'])

    op.create_table(
        'inventory_transactions',
        _id(),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        _uuid('location_id', 'locations.id'),
        sa.Column('transaction_type', sa.String(50), nullable=False,
                  comment='SALE, ALLOCATION, TRANSFER, COUNT, RETURNS, RECEIPT, ADJUSTMENT'),
        sa.Column('quantity_change', sa.Integer, nullable=False),
        sa.Column('reference_type', sa.String(50),
                  comment='ORDER, PICK_LIST, CYCLE_COUNT, TRANSFER, RETURN, RECEIVING'),
        sa.Column('reference_id', sa.String(100)),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('notes', sa.Text),
        sa.Column('metadata', postgresql.JSONB),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_inventory_transactions_variant_id', 'inventory_transactions', ['variant_id'])
    op.create_index('ix_inventory_transactions_location_id', 'inventory_transactions', ['location_id'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_created_at', 'inventory_transactions', ['created_at'])
    op.create_index('ix_inventory_transactions_reference', 'inventory_transactions', ['reference_type', 'reference_id'])

    op.create_table(
        'inventory_reservations',
        _id(),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        _uuid('order_item_id', 'order_items.id', 'CASCADE', nullable=False),
        _uuid('inventory_id', 'inventory.id', nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('quantity_picked', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', sa.String(50), nullable=False, server_default='ACTIVE', comment='ACTIVE, PICKED, RELEASED'),
        _ts('created_at', server_default=sa.func.now()),
        _ts('released_at'),
    )
    op.create_index('ix_inventory_reservations_order_id', 'inventory_reservations', ['order_id'])
    op.create_index('ix_inventory_reservations_order_item_id', 'inventory_reservations', ['order_item_id'])
    op.create_index('ix_inventory_reservations_inventory_id', 'inventory_reservations', ['inventory_id'])
    op.create_index('ix_inventory_reservations_status', 'inventory_reservations', ['status'])

    op.create_table(
        'back_orders',
        _id(),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        _uuid('order_item_id', 'order_items.id', 'CASCADE', nullable=False),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        sa.Column('quantity_backordered', sa.Integer, nullable=False),
        sa.Column('reason', sa.String(100), server_default='INSUFFICIENT_INVENTORY'),
        sa.Column('status', sa.String(50), nullable=False, server_default='OPEN', comment='OPEN, FULFILLED, CANCELLED'),
        _ts('created_at', server_default=sa.func.now()),
        _ts('fulfilled_at'),
    )
    op.create_index('ix_back_orders_order_id', 'back_orders', ['order_id'])
    op.create_index('ix_back_orders_variant_id', 'back_orders', ['variant_id'])
    op.create_index('ix_back_orders_status', 'back_orders', ['status'])
    op.create_index('ix_back_orders_created_at', 'back_orders', ['created_at'])

    op.create_table(
        'inventory_transfers',
        _id(),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        _uuid('from_location_id', 'locations.id', nullable=False),
        _uuid('to_location_id', 'locations.id', nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('reason', sa.Text),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING', comment='PENDING, APPROVED, REJECTED'),
        _uuid('requested_by', 'users.id', 'SET NULL'),
        _uuid('confirmed_by', 'users.id', 'SET NULL'),
        sa.Column('rejection_reason', sa.Text),
        _ts('created_at', server_default=sa.func.now()),
        _ts('processed_at'),
        sa.CheckConstraint('quantity > 0', name='chk_transfer_quantity_positive'),
    )
    op.create_index('ix_inventory_transfers_variant_id', 'inventory_transfers', ['variant_id'])
    op.create_index('ix_inventory_transfers_status', 'inventory_transfers', ['status'])

    # ==================== Cycle counts ====================
    op.create_table(
        'cycle_count_campaigns',
        _id(),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('count_type', sa.String(50), server_default='SCHEDULED', comment='SCHEDULED, SPOT_CHECK, SHORTAGE'),
        sa.Column('status', sa.String(50), server_default='ACTIVE', comment='PLANNED, ACTIVE, COMPLETED, CANCELLED'),
        sa.Column('total_tasks', sa.Integer, server_default='0'),
        sa.Column('completed_tasks', sa.Integer, server_default='0'),
        sa.Column('variances_found', sa.Integer, server_default='0'),
        sa.Column('tolerance', sa.Numeric(6, 2), server_default='5'),
        _uuid('source_order_id', 'orders.id', 'SET NULL'),
        _uuid('created_by', 'users.id', 'SET NULL'),
        _ts('start_date', server_default=sa.func.now()),
        _ts('end_date'),
        _ts('created_at', server_default=sa.func.now()),
    )
    op.create_index('ix_cycle_count_campaigns_status', 'cycle_count_campaigns', ['status'])

    op.create_table(
        'cycle_count_tasks',
        _id(),
        _uuid('campaign_id', 'cycle_count_campaigns.id', 'CASCADE'),
        sa.Column('task_number', sa.String(50), nullable=False),
        _uuid('variant_id', 'product_variants.id'),
        _uuid('location_id', 'locations.id'),
        sa.Column('system_quantity', sa.Integer, server_default='0'),
        sa.Column('counted_quantity', sa.Integer),
        sa.Column('variance', sa.Integer),
        sa.Column('variance_percentage', sa.Numeric(10, 2)),
        sa.Column('tolerance', sa.Numeric(6, 2), server_default='5'),
        sa.Column('status', sa.String(50), server_default='PENDING',
                  comment='PENDING, IN_PROGRESS, COMPLETED, VARIANCE_REVIEW, RECOUNT_REQUIRED, SKIPPED, CANCELLED'),
        sa.Column('requires_recount', sa.Boolean, server_default=sa.false()),
        sa.Column('recount_reason', sa.Text),
        sa.Column('notes', sa.Text),
        _uuid('assigned_to', 'users.id', 'SET NULL'),
        _uuid('counted_by', 'users.id', 'SET NULL'),
        _ts('counted_at'),
        _ts('completed_at'),
        _ts('created_at', server_default=sa.func.now()),
    )
    op.create_index('ix_cycle_count_tasks_campaign_id', 'cycle_count_tasks', ['campaign_id'])
    op.create_index('ix_cycle_count_tasks_task_number', 'cycle_count_tasks', ['task_number'])
    op.create_index('ix_cycle_count_tasks_variant_id', 'cycle_count_tasks', ['variant_id'])
    op.create_index('ix_cycle_count_tasks_location_id', 'cycle_count_tasks', ['location_id'])
    op.create_index('ix_cycle_count_tasks_status', 'cycle_count_tasks', ['status'])
    op.create_index('ix_cycle_count_tasks_assigned_to', 'cycle_count_tasks', ['assigned_to'])

    op.create_table(
        'cycle_count_events',
        _id(),
        _uuid('task_id', 'cycle_count_tasks.id', 'CASCADE'),
        sa.Column('event_type', sa.String(50), nullable=False),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('previous_value', sa.Integer),
        sa.Column('new_value', sa.Integer),
        sa.Column('notes', sa.Text),
        sa.Column('metadata', postgresql.JSONB),
        _ts('created_at', server_default=sa.func.now()),
    )
    op.create_index('ix_cycle_count_events_task_id', 'cycle_count_events', ['task_id'])

    # ==================== Picking ====================
    op.create_table(
        'pick_lists',
        _id(),
        sa.Column('batch_number', sa.String(30), nullable=False, unique=True,
                  comment='Unique batch number e.g., PICK-20240101-0001'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, ASSIGNED, IN_PROGRESS, PAUSED, COMPLETED, CANCELLED'),
        sa.Column('priority', sa.Integer, server_default='5', comment='Priority 1-10, lower is higher priority'),
        sa.Column('total_items', sa.Integer, server_default='0'),
        sa.Column('picked_items', sa.Integer, server_default='0'),
        _uuid('assigned_to', 'users.id', 'SET NULL', comment='Assigned picker'),
        _uuid('created_by', 'users.id', 'SET NULL'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('started_at'),
        _ts('completed_at'),
        sa.Column('notes', sa.Text),
    )
    op.create_index('ix_pick_lists_batch_number', 'pick_lists', ['batch_number'])
    op.create_index('ix_pick_lists_status', 'pick_lists', ['status'])
    op.create_index('ix_pick_lists_assigned_to', 'pick_lists', ['assigned_to'])
    op.create_index('ix_pick_lists_created_at', 'pick_lists', ['created_at'])

    op.create_table(
        'pick_list_items',
        _id(),
        _uuid('pick_list_id', 'pick_lists.id', 'CASCADE', nullable=False),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        _uuid('order_item_id', 'order_items.id', 'CASCADE', nullable=False),
        _uuid('reservation_id', 'inventory_reservations.id', 'SET NULL'),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        _uuid('location_id', 'locations.id', nullable=False),
        sa.Column('quantity_to_pick', sa.Integer, nullable=False),
        sa.Column('quantity_picked', sa.Integer, server_default='0'),
        sa.Column('sequence', sa.Integer, server_default='0', comment='Order in pick path'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, COMPLETED, SHORT_PICK, SKIPPED'),
        _uuid('picked_by', 'users.id', 'SET NULL'),
        _ts('picked_at'),
        sa.Column('notes', sa.Text),
    )
    op.create_index('ix_pick_list_items_pick_list_id', 'pick_list_items', ['pick_list_id'])
    op.create_index('ix_pick_list_items_order_id', 'pick_list_items', ['order_id'])

    op.create_table(
        'pick_events',
        _id(),
        _uuid('pick_list_id', 'pick_lists.id', 'CASCADE', nullable=False),
        _uuid('item_id', 'pick_list_items.id', 'SET NULL'),
        sa.Column('event_type', sa.String(50), nullable=False),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('data', postgresql.JSONB),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_pick_events_pick_list_id', 'pick_events', ['pick_list_id'])

    # ==================== Work tasks ====================
    op.create_table(
        'work_tasks',
        _id(),
        sa.Column('task_number', sa.String(30), nullable=False, unique=True),
        sa.Column('type', sa.String(50), nullable=False, comment='PACKING, SHIPPING'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, ASSIGNED, IN_PROGRESS, COMPLETED, CANCELLED'),
        sa.Column('priority', sa.Integer, server_default='5'),
        sa.Column('total_orders', sa.Integer, server_default='0'),
        sa.Column('completed_orders', sa.Integer, server_default='0'),
        sa.Column('total_items', sa.Integer, server_default='0'),
        sa.Column('completed_items', sa.Integer, server_default='0'),
        _uuid('assigned_to', 'users.id', 'SET NULL'),
        _uuid('created_by', 'users.id', 'SET NULL'),
        sa.Column('notes', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('started_at'),
        _ts('completed_at'),
    )
    op.create_index('ix_work_tasks_task_number', 'work_tasks', ['task_number'])
    op.create_index('ix_work_tasks_type', 'work_tasks', ['type'])
    op.create_index('ix_work_tasks_status', 'work_tasks', ['status'])
    op.create_index('ix_work_tasks_assigned_to', 'work_tasks', ['assigned_to'])

    op.create_table(
        'task_items',
        _id(),
        _uuid('task_id', 'work_tasks.id', 'CASCADE', nullable=False),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        _uuid('order_item_id', 'order_items.id', 'CASCADE'),
        sa.Column('quantity_required', sa.Integer, server_default='1'),
        sa.Column('quantity_completed', sa.Integer, server_default='0'),
        sa.Column('sequence', sa.Integer, server_default='0'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING', comment='PENDING, COMPLETED, SKIPPED'),
        _uuid('completed_by', 'users.id', 'SET NULL'),
        _ts('completed_at'),
        sa.Column('notes', sa.Text),
    )
    op.create_index('ix_task_items_task_id', 'task_items', ['task_id'])
    op.create_index('ix_task_items_order_id', 'task_items', ['order_id'])

    op.create_table(
        'task_events',
        _id(),
        _uuid('task_id', 'work_tasks.id', 'CASCADE', nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('data', postgresql.JSONB),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_task_events_task_id', 'task_events', ['task_id'])

    # ==================== Returns ====================
    op.create_table(
        'return_orders',
        _id(),
        sa.Column('rma_number', sa.String(30), nullable=False, unique=True, comment='RMA-YYYY-NNNN'),
        _uuid('order_id', 'orders.id', 'RESTRICT', nullable=False),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, APPROVED, REJECTED, IN_TRANSIT, RECEIVED, INSPECTION_COMPLETE, REFUNDED, CANCELLED'),
        sa.Column('reason', sa.String(50), nullable=False,
                  comment='DEFECTIVE, WRONG_ITEM, DAMAGED_SHIPPING, NOT_AS_DESCRIBED, NO_LONGER_NEEDED, CHANGED_MIND, OTHER'),
        sa.Column('reason_details', sa.Text),
        sa.Column('approval_required', sa.Boolean, server_default=sa.false()),
        sa.Column('rejection_reason', sa.Text),
        sa.Column('refund_status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, PROCESSING, COMPLETED, FAILED'),
        sa.Column('restocking_fee', sa.Numeric(12, 2), server_default='0'),
        sa.Column('refund_amount', sa.Numeric(12, 2)),
        _uuid('approved_by', 'users.id', 'SET NULL'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('approved_at'),
        _ts('received_at'),
        _ts('inspected_at'),
        _ts('refunded_at'),
    )
    op.create_index('ix_return_orders_rma_number', 'return_orders', ['rma_number'])
    op.create_index('ix_return_orders_order_id', 'return_orders', ['order_id'])
    op.create_index('ix_return_orders_status', 'return_orders', ['status'])

    op.create_table(
        'return_items',
        _id(),
        _uuid('return_order_id', 'return_orders.id', 'CASCADE', nullable=False),
        _uuid('order_item_id', 'order_items.id', 'SET NULL'),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), server_default='0'),
        sa.Column('quantity_requested', sa.Integer, nullable=False),
        sa.Column('quantity_received', sa.Integer, server_default='0'),
        sa.Column('quantity_restockable', sa.Integer, server_default='0'),
        sa.Column('quantity_disposed', sa.Integer, server_default='0'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, RECEIVED, INSPECTED, RESTOCKED'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_return_items_return_order_id', 'return_items', ['return_order_id'])

    op.create_table(
        'return_inspections',
        _id(),
        _uuid('return_item_id', 'return_items.id', 'CASCADE', nullable=False),
        sa.Column('condition', sa.String(50), nullable=False, comment='NEW_UNOPENED, LIKE_NEW, GOOD, FAIR, DAMAGED'),
        sa.Column('condition_notes', sa.Text),
        sa.Column('disposition', sa.String(50), nullable=False, comment='RESTOCK, DISPOSE'),
        sa.Column('disposition_notes', sa.Text),
        _uuid('restock_location_id', 'locations.id'),
        _uuid('inspected_by', 'users.id', 'SET NULL'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_return_inspections_return_item_id', 'return_inspections', ['return_item_id'])

    op.create_table(
        'return_events',
        _id(),
        _uuid('return_order_id', 'return_orders.id', 'CASCADE', nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('data', postgresql.JSONB),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_return_events_return_order_id', 'return_events', ['return_order_id'])

    # ==================== Receiving ====================
    op.create_table(
        'receiving_sessions',
        _id(),
        sa.Column('po_id', sa.String(100), nullable=False),
        sa.Column('po_reference', sa.String(100)),
        sa.Column('vendor', sa.String(200)),
        _uuid('location_id', 'locations.id', nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, SUBMITTED, APPROVED, REJECTED'),
        _uuid('counted_by', 'users.id', 'SET NULL'),
        _uuid('approved_by', 'users.id', 'SET NULL'),
        sa.Column('rejection_reason', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('submitted_at'),
        _ts('processed_at'),
    )
    op.create_index('ix_receiving_sessions_po_id', 'receiving_sessions', ['po_id'])
    op.create_index('ix_receiving_sessions_status', 'receiving_sessions', ['status'])

    op.create_table(
        'receiving_line_items',
        _id(),
        _uuid('session_id', 'receiving_sessions.id', 'CASCADE', nullable=False),
        _uuid('variant_id', 'product_variants.id', nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('quantity_expected', sa.Integer, server_default='0'),
        sa.Column('quantity_counted', sa.Integer, server_default='0'),
    )
    op.create_index('ix_receiving_line_items_session_id', 'receiving_line_items', ['session_id'])

    # ==================== Notifications, sync queue, audit ====================
    op.create_table(
        'notifications',
        _id(),
        _uuid('user_id', 'users.id', 'CASCADE', nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('link', sa.String(500)),
        sa.Column('data', postgresql.JSONB),
        sa.Column('read', sa.Boolean, nullable=False, server_default=sa.false()),
        _ts('read_at'),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_read', 'notifications', ['read'])

    op.create_table(
        'fulfillment_syncs',
        _id(),
        _uuid('order_id', 'orders.id', 'CASCADE', nullable=False),
        sa.Column('sync_type', sa.String(50), nullable=False, comment='FULFILLMENT, REFUND'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING', comment='PENDING, COMPLETED, FAILED'),
        sa.Column('payload', postgresql.JSONB),
        sa.Column('attempts', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
        _ts('last_attempt_at'),
        _ts('completed_at'),
    )
    op.create_index('ix_fulfillment_syncs_order_id', 'fulfillment_syncs', ['order_id'])
    op.create_index('ix_fulfillment_syncs_status', 'fulfillment_syncs', ['status'])

    op.create_table(
        'audit_logs',
        _id(),
        _uuid('user_id', 'users.id', 'SET NULL'),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        _uuid('entity_id'),
        sa.Column('old_values', postgresql.JSONB),
        sa.Column('new_values', postgresql.JSONB),
        sa.Column('description', sa.Text),
        _ts('created_at', nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    for table in (
        'audit_logs',
        'fulfillment_syncs',
        'notifications',
        'receiving_line_items',
        'receiving_sessions',
        'return_events',
        'return_inspections',
        'return_items',
        'return_orders',
        'task_events',
        'task_items',
        'work_tasks',
        'pick_events',
        'pick_list_items',
        'pick_lists',
        'cycle_count_events',
        'cycle_count_tasks',
        'cycle_count_campaigns',
        'inventory_transfers',
        'back_orders',
        'inventory_reservations',
        'inventory_transactions',
        'inventory',
        'order_status_history',
        'order_items',
        'orders',
        'locations',
        'product_variants',
        'products',
        'users',
    ):
        op.drop_table(table)

"""Create fulfillment schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    """Create clients, warehouse, shipment, pricing and billing tables"""

    # ====================
    # PLANS / CLIENTS
    # ====================
    op.create_table(
        'plans',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), unique=True, nullable=False),
        sa.Column('operations_rate_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('capacity_cbm', sa.Float, server_default='0', nullable=False),
        sa.Column('buffer_cbm', sa.Float, server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(200), nullable=False),
        sa.Column('plan_id', sa.Uuid(), sa.ForeignKey('plans.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subscription_discount_percent', sa.Float, server_default='0', nullable=False),
        sa.Column('used_capacity_cbm', sa.Float, server_default='0', nullable=False),
        sa.Column('capacity_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('weekly_overspace_charge_eur', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('space_warning', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_clients_email', 'clients', ['email'], unique=True)

    # ====================
    # DELIVERIES / WAREHOUSE ORDERS / PACKAGES
    # ====================
    op.create_table(
        'deliveries_expected',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('supplier_name', sa.String(200), nullable=False),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('expected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), server_default='EXPECTED', nullable=False),
        sa.Column('condition', sa.String(20), nullable=True),
        sa.Column('delivery_number', sa.String(20), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=True),
        sa.Column('warehouse_location', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_deliveries_expected_client_id', 'deliveries_expected', ['client_id'])
    op.create_index('ix_deliveries_expected_status', 'deliveries_expected', ['status'])
    op.create_index('ix_deliveries_expected_delivery_number', 'deliveries_expected', ['delivery_number'], unique=True)

    op.create_table(
        'warehouse_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('source_delivery_id', sa.Uuid(),
                  sa.ForeignKey('deliveries_expected.id', ondelete='SET NULL'), nullable=True),
        sa.Column('internal_tracking_number', sa.String(20), nullable=False),
        sa.Column('status', sa.String(30), server_default='AT_WAREHOUSE', nullable=False),
        sa.Column('warehouse_location', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('packing_notes', sa.Text, nullable=True),
        sa.Column('shipment_type', sa.String(20), nullable=True),
        sa.Column('packed_weight_kg', sa.Float, nullable=True),
        sa.Column('packed_volume_cbm', sa.Float, nullable=True),
        sa.Column('packed_pallet_count', sa.Integer, nullable=True),
        sa.Column('packed_length_cm', sa.Float, nullable=True),
        sa.Column('packed_width_cm', sa.Float, nullable=True),
        sa.Column('packed_height_cm', sa.Float, nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('packed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_warehouse_orders_client_id', 'warehouse_orders', ['client_id'])
    op.create_index('ix_warehouse_orders_status', 'warehouse_orders', ['status'])
    op.create_index(
        'ix_warehouse_orders_internal_tracking_number', 'warehouse_orders',
        ['internal_tracking_number'], unique=True
    )

    op.create_table(
        'packages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('warehouse_order_id', sa.Uuid(),
                  sa.ForeignKey('warehouse_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('unit_count', sa.Integer, server_default='1', nullable=False),
        sa.Column('width_cm', sa.Float, nullable=True),
        sa.Column('length_cm', sa.Float, nullable=True),
        sa.Column('height_cm', sa.Float, nullable=True),
        sa.Column('weight_kg', sa.Float, nullable=False),
        sa.Column('volume_cbm', sa.Float, server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_packages_warehouse_order_id', 'packages', ['warehouse_order_id'])

    # ====================
    # TRANSPORT PRICING
    # ====================
    op.create_table(
        'transport_pricing_rules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('transport_type', sa.String(20), nullable=False),
        sa.Column('type', sa.String(30), server_default='FIXED_PER_UNIT', nullable=False),
        sa.Column('weight_min_kg', sa.Float, nullable=True),
        sa.Column('weight_max_kg', sa.Float, nullable=True),
        sa.Column('volume_min_cbm', sa.Float, nullable=True),
        sa.Column('volume_max_cbm', sa.Float, nullable=True),
        sa.Column('pallet_count_min', sa.Integer, nullable=True),
        sa.Column('pallet_count_max', sa.Integer, nullable=True),
        sa.Column('price_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('priority', sa.Integer, server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_transport_pricing_rules_transport_type', 'transport_pricing_rules', ['transport_type'])
    op.create_index('ix_transport_pricing_rules_priority', 'transport_pricing_rules', ['priority'])

    # ====================
    # SHIPMENTS
    # ====================
    op.create_table(
        'shipment_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(30), server_default='REQUESTED', nullable=False),
        sa.Column('transport_mode', sa.String(20), server_default='MAK', nullable=False),
        sa.Column('delivery_address', sa.JSON, nullable=True),
        sa.Column('shipment_type', sa.String(20), nullable=True),
        sa.Column('total_volume_cbm', sa.Float, nullable=True),
        sa.Column('total_weight_kg', sa.Float, nullable=True),
        sa.Column('total_pallet_count', sa.Integer, nullable=True),
        sa.Column('calculated_price_eur', sa.Numeric(12, 2), nullable=True),
        # Historical reference to the matched rule, deliberately without a foreign key
        sa.Column('transport_pricing_id', sa.Uuid(), nullable=True),
        sa.Column('proposed_price_eur', sa.Numeric(12, 2), nullable=True),
        sa.Column('needs_manual_quote', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('priced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quoted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('quote_notes', sa.Text, nullable=True),
        sa.Column('client_transport_choice', sa.String(20), nullable=True),
        sa.Column('payment_method', sa.String(20), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('custom_quote_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('own_transport_vehicle_reg', sa.String(20), nullable=True),
        sa.Column('own_transport_trailer_reg', sa.String(20), nullable=True),
        sa.Column('own_transport_carrier', sa.String(100), nullable=True),
        sa.Column('own_transport_tracking_number', sa.String(100), nullable=True),
        sa.Column('own_transport_planned_loading_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_vehicle_reg', sa.String(20), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_shipment_orders_client_id', 'shipment_orders', ['client_id'])
    op.create_index('ix_shipment_orders_status', 'shipment_orders', ['status'])

    op.create_table(
        'shipment_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('shipment_id', sa.Uuid(),
                  sa.ForeignKey('shipment_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('warehouse_order_id', sa.Uuid(),
                  sa.ForeignKey('warehouse_orders.id', ondelete='RESTRICT'), unique=True, nullable=False),
    )
    op.create_index('ix_shipment_items_shipment_id', 'shipment_items', ['shipment_id'])

    # ====================
    # BILLING
    # ====================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('invoice_number', sa.String(20), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('shipment_order_id', sa.Uuid(),
                  sa.ForeignKey('shipment_orders.id', ondelete='RESTRICT'), unique=True, nullable=True),
        sa.Column('invoice_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), server_default='ISSUED', nullable=False),
        sa.Column('amount_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), server_default='EUR', nullable=False),
        sa.Column('due_date', sa.Date, nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=True),
        sa.Column('payment_link', sa.String(500), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('plan_id', sa.Uuid(), nullable=True),
        sa.Column('subscription_period_months', sa.Integer, nullable=True),
        sa.Column('voucher_id', sa.Uuid(), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'vouchers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('amount_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_one_time', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_by_client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_vouchers_code', 'vouchers', ['code'], unique=True)

    op.create_table(
        'setup_fees',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('suggested_amount_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('current_amount_eur', sa.Numeric(12, 2), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('prefix', sa.String(10), nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('current_number', sa.Integer, server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('prefix', 'year', name='uq_document_sequence_prefix_year'),
    )


def downgrade():
    """Drop all fulfillment tables"""
    op.drop_table('document_sequences')
    op.drop_table('setup_fees')
    op.drop_table('vouchers')
    op.drop_table('invoices')
    op.drop_table('shipment_items')
    op.drop_table('shipment_orders')
    op.drop_table('transport_pricing_rules')
    op.drop_table('packages')
    op.drop_table('warehouse_orders')
    op.drop_table('deliveries_expected')
    op.drop_table('clients')
    op.drop_table('plans')

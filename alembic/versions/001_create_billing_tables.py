"""Create billing tables

Revision ID: 001_billing
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_billing'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create customer, shipment, inventory, pricing and invoice tables"""

    # ====================
    # CUSTOMERS
    # ====================
    op.create_table(
        'customers',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('company_name', sa.String(200), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('storage_type', sa.String(30), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])

    # ====================
    # SHIPMENTS
    # ====================
    op.create_table(
        'shipments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', JSONB, nullable=True),
        sa.Column('ship_to', sa.String(500), nullable=True),
        sa.Column('remarks', sa.Text, nullable=True),
        sa.Column('product_id', sa.String(64), nullable=True),
        sa.Column('product_name', sa.String(300), nullable=True),
        sa.Column('shipped_qty', sa.Numeric(14, 3), nullable=True),
        sa.Column('boxes_shipped', sa.Numeric(14, 3), nullable=True),
        sa.Column('units_for_pricing', sa.Numeric(14, 3), nullable=True),
        sa.Column('pack_of', sa.Numeric(14, 3), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('remaining_qty', sa.Numeric(14, 3), nullable=True),
        sa.Column('items', JSONB, nullable=True),
        sa.Column('additional_services', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_shipments_customer_id', 'shipments', ['customer_id'])

    # ====================
    # INVENTORY
    # ====================
    op.create_table(
        'inventory_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_name', sa.String(300), nullable=True),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=True),
        sa.Column('status', sa.String(30), server_default='In Stock', nullable=True),
        sa.Column('date_added', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_inventory_items_customer_id', 'inventory_items', ['customer_id'])
    op.create_index('ix_inventory_items_status', 'inventory_items', ['status'])

    # ====================
    # STORAGE PRICING
    # ====================
    op.create_table(
        'storage_pricing',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Numeric(14, 2), nullable=True),
        sa.Column('pallet_count', sa.Integer, nullable=True),
        sa.Column('created_at', JSONB, nullable=True),
        sa.Column('updated_at', JSONB, nullable=True),
    )
    op.create_index('ix_storage_pricing_customer_id', 'storage_pricing', ['customer_id'])

    # ====================
    # INVOICES
    # ====================
    op.create_table(
        'invoices',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('customer_id', UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_number', sa.String(50), unique=True, nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('invoice_date', sa.Date, nullable=False),
        sa.Column('invoice_type', sa.String(20), server_default='shipment', nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('sold_to', JSONB, nullable=False),
        sa.Column('fbm', sa.String(50), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('grand_total', sa.Numeric(14, 2), nullable=False),
        sa.Column('additional_services', JSONB, nullable=True),
        sa.Column('invoice_month', sa.String(40), nullable=True),
        sa.Column('storage_type', sa.String(30), nullable=True),
        sa.Column('item_count', sa.Numeric(14, 3), nullable=True),
        sa.Column('pallet_count', sa.Integer, nullable=True),
        sa.Column('auto_generated', sa.Boolean, server_default='false', nullable=False),
        sa.Column('auto_generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_test', sa.Boolean, server_default='false', nullable=False),
        sa.Column('test_of_invoice_month', sa.String(7), nullable=True),
        sa.Column('generated_by', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_customer_type_month', 'invoices', ['customer_id', 'invoice_type', 'invoice_month'])

    # ====================
    # INVOICE LINE ITEMS
    # ====================
    op.create_table(
        'invoice_line_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer, nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('product_name', sa.String(300), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('ship_date', sa.String(20), nullable=True),
        sa.Column('ship_to', sa.String(500), nullable=True),
        sa.Column('packaging', sa.String(50), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('shipment_id', sa.String(64), nullable=True),
    )
    op.create_index('ix_invoice_line_items_invoice_id', 'invoice_line_items', ['invoice_id'])
    op.create_index('ix_invoice_line_items_shipment_id', 'invoice_line_items', ['shipment_id'])


def downgrade():
    """Drop billing tables"""
    op.drop_table('invoice_line_items')
    op.drop_table('invoices')
    op.drop_table('storage_pricing')
    op.drop_table('inventory_items')
    op.drop_table('shipments')
    op.drop_table('customers')

"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the ledger schema from scratch:
- serialized_products / quantity_products: stock items
- stock_movements: append-only stock history
- cash_registers, register_snapshots, settlement_records, variance_records
- documents, document_lines, document_sequences: sale/purchase lifecycle
- expenses, cash_movements: append-only money history
- audit_entries: one row per mutation attempt
- store_settings: store-level policy
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _index(table, *columns, unique=False):
    op.create_index(f"ix_{table}_{'_'.join(columns)}", table, list(columns), unique=unique)


def upgrade():
    # ============================================================================
    # Stock
    # ============================================================================
    op.create_table(
        'serialized_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('imei', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('buy_price_cents', sa.Integer(), nullable=False),
        sa.Column('sell_price_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('lifecycle_state', sa.String(length=16), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('available', 'reserved', 'sold', 'returned', 'damaged')",
            name='ck_serialized_products_status',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('serialized_products', 'store_id')
    _index('serialized_products', 'status')
    _index('serialized_products', 'lifecycle_state')
    op.create_index(
        'uq_serialized_products_store_imei_active',
        'serialized_products',
        ['store_id', 'imei'],
        unique=True,
        sqlite_where=sa.text("lifecycle_state = 'active'"),
        postgresql_where=sa.text("lifecycle_state = 'active'"),
    )

    op.create_table(
        'quantity_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('buy_price_cents', sa.Integer(), nullable=False),
        sa.Column('sell_price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('min_qty', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('lifecycle_state', sa.String(length=16), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('min_qty >= 0', name='ck_quantity_products_min_qty'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('quantity_products', 'store_id')
    _index('quantity_products', 'lifecycle_state')
    op.create_index('ix_quantity_products_store_active', 'quantity_products', ['store_id', 'is_active'])

    # ============================================================================
    # Registers
    # ============================================================================
    op.create_table(
        'cash_registers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('opening_balance_cents', sa.Integer(), nullable=False),
        sa.Column('expected_balance_cents', sa.Integer(), nullable=True),
        sa.Column('closing_balance_cents', sa.Integer(), nullable=True),
        sa.Column('opened_by', sa.Integer(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reconciled', sa.Boolean(), nullable=False),
        sa.Column('reconciled_by', sa.Integer(), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint("status IN ('open', 'closed')", name='ck_cash_registers_status'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('cash_registers', 'store_id')
    _index('cash_registers', 'status')
    _index('cash_registers', 'opened_at')
    # At most one open register per store
    op.create_index(
        'uq_cash_registers_one_open_per_store',
        'cash_registers',
        ['store_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ============================================================================
    # Documents
    # ============================================================================
    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('counterparty_id', sa.Integer(), nullable=True),
        sa.Column('doc_number', sa.String(length=64), nullable=False),
        sa.Column('doc_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_type', sa.String(length=16), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False),
        sa.Column('remaining_amount_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('register_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('modified_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('posted_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint("kind IN ('sale', 'purchase')", name='ck_documents_kind'),
        sa.CheckConstraint("status IN ('draft', 'posted', 'cancelled')", name='ck_documents_status'),
        sa.CheckConstraint('total_cents >= 0 AND paid_amount_cents >= 0', name='ck_documents_amounts'),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'doc_number', name='uq_documents_store_doc_number'),
        sqlite_autoincrement=True
    )
    _index('documents', 'store_id')
    _index('documents', 'counterparty_id')
    _index('documents', 'status')
    _index('documents', 'register_id')
    op.create_index(
        'ix_documents_store_kind_status_date', 'documents', ['store_id', 'kind', 'status', 'doc_date']
    )

    op.create_table(
        'document_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('serialized_product_id', sa.Integer(), nullable=True),
        sa.Column('quantity_product_id', sa.Integer(), nullable=True),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('identifier_snapshot', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(item_type = 'serialized' AND serialized_product_id IS NOT NULL AND quantity_product_id IS NULL AND qty = 1)"
            " OR (item_type = 'quantity' AND quantity_product_id IS NOT NULL AND serialized_product_id IS NULL)",
            name='ck_document_lines_item_ref',
        ),
        sa.CheckConstraint('qty >= 1', name='ck_document_lines_qty'),
        sa.CheckConstraint(
            'unit_price_cents >= 0 AND discount_cents >= 0 AND discount_cents <= unit_price_cents',
            name='ck_document_lines_pricing',
        ),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id']),
        sa.ForeignKeyConstraint(['serialized_product_id'], ['serialized_products.id']),
        sa.ForeignKeyConstraint(['quantity_product_id'], ['quantity_products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('document_lines', 'document_id')
    _index('document_lines', 'serialized_product_id')
    _index('document_lines', 'quantity_product_id')

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('document_kind', sa.String(length=16), nullable=False),
        sa.Column('sequence_date', sa.Date(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'document_kind', 'sequence_date', name='uq_doc_sequences_store_kind_date'),
        sqlite_autoincrement=True
    )
    _index('document_sequences', 'store_id')

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('serialized_product_id', sa.Integer(), nullable=True),
        sa.Column('quantity_product_id', sa.Integer(), nullable=True),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('quantity_after', sa.Integer(), nullable=True),
        sa.Column('status_after', sa.String(length=16), nullable=True),
        sa.Column('document_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(item_type = 'serialized' AND serialized_product_id IS NOT NULL AND quantity_product_id IS NULL)"
            " OR (item_type = 'quantity' AND quantity_product_id IS NOT NULL AND serialized_product_id IS NULL)",
            name='ck_stock_movements_item_ref',
        ),
        sa.ForeignKeyConstraint(['serialized_product_id'], ['serialized_products.id']),
        sa.ForeignKeyConstraint(['quantity_product_id'], ['quantity_products.id']),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('stock_movements', 'store_id')
    _index('stock_movements', 'serialized_product_id')
    _index('stock_movements', 'quantity_product_id')
    _index('stock_movements', 'movement_type')
    _index('stock_movements', 'document_id')
    _index('stock_movements', 'created_at')
    op.create_index('ix_stock_movements_store_created', 'stock_movements', ['store_id', 'created_at'])

    # ============================================================================
    # Cash
    # ============================================================================
    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('expense_date', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_expenses_amount_positive'),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('expenses', 'store_id')
    _index('expenses', 'register_id')

    op.create_table(
        'cash_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=True),
        sa.Column('expense_id', sa.Integer(), nullable=True),
        sa.Column('register_id', sa.Integer(), nullable=True),
        sa.Column('corrects_movement_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_cash_movements_amount_positive'),
        sa.CheckConstraint("direction IN ('in', 'out')", name='ck_cash_movements_direction'),
        sa.CheckConstraint('document_id IS NULL OR expense_id IS NULL', name='ck_cash_movements_single_link'),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id']),
        sa.ForeignKeyConstraint(['expense_id'], ['expenses.id']),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id']),
        sa.ForeignKeyConstraint(['corrects_movement_id'], ['cash_movements.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('corrects_movement_id'),
        sqlite_autoincrement=True
    )
    _index('cash_movements', 'store_id')
    _index('cash_movements', 'document_id')
    _index('cash_movements', 'expense_id')
    _index('cash_movements', 'register_id')
    _index('cash_movements', 'created_at')
    op.create_index('ix_cash_movements_store_created', 'cash_movements', ['store_id', 'created_at'])
    op.create_index('ix_cash_movements_register_direction', 'cash_movements', ['register_id', 'direction'])

    op.create_table(
        'register_snapshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=False),
        sa.Column('snapshot_type', sa.String(length=32), nullable=False),
        sa.Column('snapshot_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('balance_at_time_cents', sa.Integer(), nullable=False),
        sa.Column('transactions_count', sa.Integer(), nullable=False),
        sa.Column('last_movement_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id']),
        sa.ForeignKeyConstraint(['last_movement_id'], ['cash_movements.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('register_snapshots', 'register_id')
    op.create_index('ix_register_snapshots_register_time', 'register_snapshots', ['register_id', 'snapshot_time'])

    op.create_table(
        'settlement_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=False),
        sa.Column('settlement_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_sales_cents', sa.Integer(), nullable=False),
        sa.Column('total_refunds_cents', sa.Integer(), nullable=False),
        sa.Column('total_purchases_cents', sa.Integer(), nullable=False),
        sa.Column('total_expenses_cents', sa.Integer(), nullable=False),
        sa.Column('other_in_cents', sa.Integer(), nullable=False),
        sa.Column('other_out_cents', sa.Integer(), nullable=False),
        sa.Column('net_cash_cents', sa.Integer(), nullable=False),
        sa.Column('opening_balance_cents', sa.Integer(), nullable=False),
        sa.Column('closing_balance_cents', sa.Integer(), nullable=False),
        sa.Column('expected_balance_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('flagged_for_review', sa.Boolean(), nullable=False),
        sa.Column('reconciled', sa.Boolean(), nullable=False),
        sa.Column('reconciled_by', sa.Integer(), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('register_id'),
        sqlite_autoincrement=True
    )
    _index('settlement_records', 'store_id')
    _index('settlement_records', 'flagged_for_review')

    op.create_table(
        'variance_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('settlement_id', sa.Integer(), nullable=False),
        sa.Column('variance_amount_cents', sa.Integer(), nullable=False),
        sa.Column('variance_type', sa.String(length=16), nullable=False),
        sa.Column('investigation_status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('investigated_by', sa.Integer(), nullable=True),
        sa.Column('investigated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['settlement_id'], ['settlement_records.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('settlement_id'),
        sqlite_autoincrement=True
    )
    _index('variance_records', 'store_id')
    _index('variance_records', 'investigation_status')

    # ============================================================================
    # Audit & settings
    # ============================================================================
    op.create_table(
        'audit_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('entity', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('error_code', sa.String(length=64), nullable=True),
        sa.Column('error_message', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _index('audit_entries', 'store_id')
    _index('audit_entries', 'action')
    _index('audit_entries', 'actor_id')
    _index('audit_entries', 'status')
    _index('audit_entries', 'created_at')
    op.create_index('ix_audit_entries_entity', 'audit_entries', ['entity', 'entity_id'])
    op.create_index('ix_audit_entries_store_created', 'audit_entries', ['store_id', 'created_at'])

    op.create_table(
        'store_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'key', name='uq_store_settings_key'),
        sqlite_autoincrement=True
    )
    _index('store_settings', 'store_id')


def downgrade():
    for table in (
        'store_settings',
        'audit_entries',
        'variance_records',
        'settlement_records',
        'register_snapshots',
        'cash_movements',
        'expenses',
        'stock_movements',
        'document_sequences',
        'document_lines',
        'documents',
        'cash_registers',
        'quantity_products',
        'serialized_products',
    ):
        op.drop_table(table)

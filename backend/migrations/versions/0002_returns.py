"""sale returns

Revision ID: 0002_returns
Revises: 0001_initial_ledger
Create Date: 2026-10-18 12:00:00.000000

Adds returns: partial returns of posted sale lines with an
approval workflow (pending -> approved/rejected -> refunded).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_returns'
down_revision = '0001_initial_ledger'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('document_line_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('refund_amount_cents', sa.Integer(), nullable=False),
        sa.Column('refund_method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.Integer(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=255), nullable=True),
        sa.Column('refunded_by', sa.Integer(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cash_movement_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('qty >= 1', name='ck_returns_qty'),
        sa.CheckConstraint('refund_amount_cents >= 0', name='ck_returns_refund_amount'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'refunded')",
            name='ck_returns_status',
        ),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id']),
        sa.ForeignKeyConstraint(['document_line_id'], ['document_lines.id']),
        sa.ForeignKeyConstraint(['cash_movement_id'], ['cash_movements.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_returns_store_id', 'returns', ['store_id'])
    op.create_index('ix_returns_document_id', 'returns', ['document_id'])
    op.create_index('ix_returns_document_line_id', 'returns', ['document_line_id'])
    op.create_index('ix_returns_store_status', 'returns', ['store_id', 'status'])


def downgrade():
    op.drop_index('ix_returns_store_status', table_name='returns')
    op.drop_index('ix_returns_document_line_id', table_name='returns')
    op.drop_index('ix_returns_document_id', table_name='returns')
    op.drop_index('ix_returns_store_id', table_name='returns')
    op.drop_table('returns')

"""Initial billing schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

WHAT: Creates jobs, invoices, change_orders, invoice_line_items and
job_activities.

WHY: The billing engine stores every amount as integer cents (BIGINT) and
relies on two constraints as storage backstops:
1. UNIQUE (job_id, sequence_number) on invoices, so an invoice number can
   never be allocated twice for a job
2. change_orders.invoice_id, written once by a conditional UPDATE, recording
   the single invoice that billed a change order

HOW: Enums are stored as VARCHAR with CHECK constraints (non-native) so the
schema is identical on PostgreSQL and SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, length: int, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=length)


def upgrade() -> None:
    """Create the billing tables."""
    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column(
            'deal_type',
            _enum('deal_type', 20, 'insurance', 'cash', 'financed'),
            nullable=True,
        ),
        sa.Column(
            'base_contract_value',
            sa.BigInteger(),
            nullable=True,
            comment='Signed contract value in cents (NULL when never recorded)',
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_id', 'jobs', ['id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column(
            'invoice_number',
            sa.String(length=50),
            nullable=False,
            comment='Invoice number (e.g., INV-42-03)',
        ),
        sa.Column(
            'invoice_type',
            _enum('invoice_type', 20, 'deposit', 'progress', 'supplement', 'final'),
            nullable=False,
        ),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('tax_amount', sa.BigInteger(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column(
            'status',
            _enum('invoice_status', 20, 'draft', 'sent', 'paid', 'overdue', 'cancelled'),
            nullable=False,
        ),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('document_url', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'sequence_number', name='uq_invoices_job_sequence'),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_job_id', 'invoices', ['job_id'])
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_invoice_type', 'invoices', ['invoice_type'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'change_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column(
            'change_type',
            _enum('change_order_type', 30, 'supplement', 'retail_change', 'insurance_supplement'),
            nullable=False,
        ),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='Amount in cents'),
        sa.Column(
            'status',
            _enum('change_order_status', 20, 'pending', 'approved', 'rejected'),
            nullable=False,
        ),
        sa.Column(
            'invoice_id',
            sa.Integer(),
            nullable=True,
            comment='Invoice that billed this change order',
        ),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_change_orders_id', 'change_orders', ['id'])
    op.create_index('ix_change_orders_job_id', 'change_orders', ['job_id'])
    op.create_index('ix_change_orders_status', 'change_orders', ['status'])
    op.create_index('ix_change_orders_invoice_id', 'change_orders', ['invoice_id'])

    op.create_table(
        'invoice_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.BigInteger(), nullable=False),
        sa.Column('total_price', sa.BigInteger(), nullable=False),
        sa.Column('change_order_id', sa.Integer(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['change_order_id'], ['change_orders.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_line_items_id', 'invoice_line_items', ['id'])
    op.create_index('ix_invoice_line_items_invoice_id', 'invoice_line_items', ['invoice_id'])
    op.create_index(
        'ix_invoice_line_items_change_order_id', 'invoice_line_items', ['change_order_id']
    )

    op.create_table(
        'job_activities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('activity_type', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_job_activities_id', 'job_activities', ['id'])
    op.create_index('ix_job_activities_job_created', 'job_activities', ['job_id', 'created_at'])


def downgrade() -> None:
    """Drop the billing tables."""
    op.drop_table('job_activities')
    op.drop_table('invoice_line_items')
    op.drop_table('change_orders')
    op.drop_table('invoices')
    op.drop_table('jobs')

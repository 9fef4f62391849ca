"""Add unallocatable_at field to pagamentos table

Revision ID: 0002_payment_unallocatable
Revises: 0001
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_payment_unallocatable'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade():
    """Mark captured payments whose quotas could not be allocated."""
    op.add_column('pagamentos', sa.Column('unallocatable_at', sa.DateTime(timezone=True), nullable=True))


def downgrade():
    """Remove unallocatable_at field from pagamentos table."""
    op.drop_column('pagamentos', 'unallocatable_at')

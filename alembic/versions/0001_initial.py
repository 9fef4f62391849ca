"""Initial schema: contests, participations, pagamentos, configuracoes_admin, audit_logs

Revision ID: 0001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create contests table
    op.create_table('contests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('draw_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('price_per_quota', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('quotas_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('drawn_numbers', sa.JSON(), nullable=True),
        sa.Column('total_prize', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('integrity_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quotas_sold >= 0', name='ck_contests_quotas_sold_non_negative'),
        sa.CheckConstraint('quotas_sold <= capacity', name='ck_contests_quotas_sold_capacity')
    )
    
    # Create participations table
    op.create_table('participations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('contest_id', sa.Uuid(), nullable=False),
        sa.Column('chosen_numbers', sa.JSON(), nullable=False),
        sa.Column('quota_count', sa.Integer(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('numbers_matched', sa.Integer(), nullable=True),
        sa.Column('is_winner', sa.Boolean(), nullable=True),
        sa.Column('prize_amount', sa.Numeric(precision=14, scale=2), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'contest_id', name='uq_participations_user_contest')
    )
    
    # Create pagamentos (payment records) table
    op.create_table('pagamentos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('contest_id', sa.Uuid(), nullable=False),
        sa.Column('quota_count', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False, server_default='gateway'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('chosen_numbers', sa.JSON(), nullable=True),
        sa.Column('checkout_session_id', sa.String(length=255), nullable=True),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('paid_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('checkout_session_id')
    )
    op.create_index('ix_pagamentos_user_id', 'pagamentos', ['user_id'])
    op.create_index('ix_pagamentos_contest_id', 'pagamentos', ['contest_id'])
    op.create_index('ix_pagamentos_status_created_at', 'pagamentos', ['status', 'created_at'])
    
    # Create configuracoes_admin (singleton) table
    op.create_table('configuracoes_admin',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('commission_percent', sa.Numeric(precision=5, scale=2), nullable=False, server_default='10'),
        sa.Column('free_quota_count', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('operator_user_id', sa.Uuid(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('commission_percent >= 0 AND commission_percent <= 100', name='ck_config_commission_range'),
        sa.CheckConstraint('free_quota_count >= 0', name='ck_config_free_quotas_non_negative')
    )
    
    # Create audit_logs table
    op.create_table('audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('actor', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('contest_id', sa.Uuid(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_contest_id', 'audit_logs', ['contest_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_contest_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('configuracoes_admin')
    op.drop_index('ix_pagamentos_status_created_at', table_name='pagamentos')
    op.drop_index('ix_pagamentos_contest_id', table_name='pagamentos')
    op.drop_index('ix_pagamentos_user_id', table_name='pagamentos')
    op.drop_table('pagamentos')
    op.drop_table('participations')
    op.drop_table('contests')

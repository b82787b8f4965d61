"""Initial billing schema (clients, payments, post counts, tasks, team, expenses)

Revision ID: 001_initial_billing_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_billing_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Create clients table
    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='monthly'),
        sa.Column('monthly_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('weekly_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('services', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('tiered_payments', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('final_monthly_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('final_weekly_rate', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('final_services', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('per_post_rates', sa.JSON(), nullable=False, server_default='{}'),
        sa.Column('fixed_payment_day', sa.Integer(), nullable=True),
        sa.Column('current_tier_index', sa.Integer(), nullable=False, server_default='-1'),
        sa.Column('payment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('next_payment', sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('payment_count >= 0', name='ck_clients_payment_count_non_negative'),
        sa.CheckConstraint(
            'fixed_payment_day IS NULL OR (fixed_payment_day BETWEEN 1 AND 31)',
            name='ck_clients_fixed_payment_day_range',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_clients_name'), 'clients', ['name'], unique=False)
    op.create_index(op.f('ix_clients_status'), 'clients', ['status'], unique=False)
    op.create_index(op.f('ix_clients_next_payment'), 'clients', ['next_payment'], unique=False)

    # Create payments table
    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='payment'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('post_count', sa.Integer(), nullable=True),
        sa.Column('platform_breakdown', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payments_client_id'), 'payments', ['client_id'], unique=False)
    op.create_index(op.f('ix_payments_payment_date'), 'payments', ['payment_date'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)
    # Completed-payment counts per client drive tier reconciliation
    op.create_index(
        'ix_payments_client_id_status',
        'payments',
        ['client_id', 'status'],
        unique=False,
        postgresql_using='btree',
    )

    # Create post_counts table
    op.create_table(
        'post_counts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('platform', sa.String(length=100), nullable=False),
        sa.Column('month_year', sa.String(length=7), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.CheckConstraint('count >= 0', name='ck_post_counts_count_non_negative'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'platform', 'month_year', name='uq_post_count_client_platform_month')
    )
    op.create_index(op.f('ix_post_counts_id'), 'post_counts', ['id'], unique=False)
    op.create_index(op.f('ix_post_counts_client_id'), 'post_counts', ['client_id'], unique=False)
    op.create_index(op.f('ix_post_counts_month_year'), 'post_counts', ['month_year'], unique=False)

    # Create tasks table
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='medium'),
        sa.Column('platform', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='todo'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tasks_client_id'), 'tasks', ['client_id'], unique=False)

    # Create team_members table
    op.create_table(
        'team_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('salary', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('payment_date', sa.String(length=50), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_team_members_status'), 'team_members', ['status'], unique=False)

    # Create other_expenses table
    op.create_table(
        'other_expenses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_other_expenses_title'), 'other_expenses', ['title'], unique=False)
    op.create_index(op.f('ix_other_expenses_date'), 'other_expenses', ['date'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_other_expenses_date'), table_name='other_expenses')
    op.drop_index(op.f('ix_other_expenses_title'), table_name='other_expenses')
    op.drop_table('other_expenses')

    op.drop_index(op.f('ix_team_members_status'), table_name='team_members')
    op.drop_table('team_members')

    op.drop_index(op.f('ix_tasks_client_id'), table_name='tasks')
    op.drop_table('tasks')

    op.drop_index(op.f('ix_post_counts_month_year'), table_name='post_counts')
    op.drop_index(op.f('ix_post_counts_client_id'), table_name='post_counts')
    op.drop_index(op.f('ix_post_counts_id'), table_name='post_counts')
    op.drop_table('post_counts')

    op.drop_index('ix_payments_client_id_status', table_name='payments')
    op.drop_index(op.f('ix_payments_status'), table_name='payments')
    op.drop_index(op.f('ix_payments_payment_date'), table_name='payments')
    op.drop_index(op.f('ix_payments_client_id'), table_name='payments')
    op.drop_table('payments')

    op.drop_index(op.f('ix_clients_next_payment'), table_name='clients')
    op.drop_index(op.f('ix_clients_status'), table_name='clients')
    op.drop_index(op.f('ix_clients_name'), table_name='clients')
    op.drop_table('clients')

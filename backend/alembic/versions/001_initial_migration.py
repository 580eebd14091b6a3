"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-09-28 10:15:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import func

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create tickets table (engine-owned columns only)
    op.create_table('tickets',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('team_id', sa.String(length=64), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('reference_url', sa.Text(), nullable=True),
    sa.Column('created_by', sa.String(length=64), nullable=True),
    sa.Column('accumulated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tickets_id'), 'tickets', ['id'], unique=False)
    op.create_index(op.f('ix_tickets_team_id'), 'tickets', ['team_id'], unique=False)

    # Create clock_sessions table
    op.create_table('clock_sessions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.String(length=64), nullable=False),
    sa.Column('team_id', sa.String(length=64), nullable=False),
    sa.Column('start_timestamp', sa.DateTime(timezone=True), nullable=False),
    sa.Column('end_timestamp', sa.DateTime(timezone=True), nullable=True),
    sa.Column('accumulated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_clock_sessions_id'), 'clock_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_clock_sessions_user_id'), 'clock_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_clock_sessions_team_id'), 'clock_sessions', ['team_id'], unique=False)
    op.create_index('idx_clock_sessions_user_start', 'clock_sessions', ['user_id', 'start_timestamp'], unique=False)
    op.create_index(
        'uq_clock_sessions_open_user_team', 'clock_sessions', ['user_id', 'team_id'],
        unique=True,
        postgresql_where=sa.text('end_timestamp IS NULL'),
        sqlite_where=sa.text('end_timestamp IS NULL')
    )

    # Create ticket_timers table
    op.create_table('ticket_timers',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('clock_session_id', sa.Integer(), nullable=False),
    sa.Column('ticket_id', sa.Integer(), nullable=False),
    sa.Column('start_timestamp', sa.DateTime(timezone=True), nullable=True),
    sa.Column('accumulated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.ForeignKeyConstraint(['clock_session_id'], ['clock_sessions.id'], ),
    sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('clock_session_id', 'ticket_id', name='uq_ticket_timers_session_ticket')
    )
    op.create_index(op.f('ix_ticket_timers_id'), 'ticket_timers', ['id'], unique=False)
    op.create_index(op.f('ix_ticket_timers_clock_session_id'), 'ticket_timers', ['clock_session_id'], unique=False)
    op.create_index(op.f('ix_ticket_timers_ticket_id'), 'ticket_timers', ['ticket_id'], unique=False)
    op.create_index(
        'uq_ticket_timers_running_session', 'ticket_timers', ['clock_session_id'],
        unique=True,
        postgresql_where=sa.text('start_timestamp IS NOT NULL'),
        sqlite_where=sa.text('start_timestamp IS NOT NULL')
    )

    # Create audit_logs table
    op.create_table('audit_logs',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=True),
    sa.Column('entity_id', sa.Integer(), nullable=True),
    sa.Column('user', sa.String(length=100), nullable=True),
    sa.Column('details', sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'), nullable=True),
    sa.Column('ip_address', sa.String(length=45), nullable=True),
    sa.Column('user_agent', sa.String(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)
    op.create_index('idx_audit_logs_created_at_desc', 'audit_logs', [sa.text('created_at DESC')], unique=False)
    op.create_index('idx_audit_logs_action', 'audit_logs', ['action'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_audit_logs_action', table_name='audit_logs')
    op.drop_index('idx_audit_logs_created_at_desc', table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_created_at'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_id'), table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('uq_ticket_timers_running_session', table_name='ticket_timers')
    op.drop_index(op.f('ix_ticket_timers_ticket_id'), table_name='ticket_timers')
    op.drop_index(op.f('ix_ticket_timers_clock_session_id'), table_name='ticket_timers')
    op.drop_index(op.f('ix_ticket_timers_id'), table_name='ticket_timers')
    op.drop_table('ticket_timers')

    op.drop_index('uq_clock_sessions_open_user_team', table_name='clock_sessions')
    op.drop_index('idx_clock_sessions_user_start', table_name='clock_sessions')
    op.drop_index(op.f('ix_clock_sessions_team_id'), table_name='clock_sessions')
    op.drop_index(op.f('ix_clock_sessions_user_id'), table_name='clock_sessions')
    op.drop_index(op.f('ix_clock_sessions_id'), table_name='clock_sessions')
    op.drop_table('clock_sessions')

    op.drop_index(op.f('ix_tickets_team_id'), table_name='tickets')
    op.drop_index(op.f('ix_tickets_id'), table_name='tickets')
    op.drop_table('tickets')

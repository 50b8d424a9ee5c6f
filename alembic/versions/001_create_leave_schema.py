"""Create leave management schema

Revision ID: 001_create_leave_schema
Revises:
Create Date: 2026-10-18

Tables: teams, users, leaves, notifications, ai_logs.
Status-like columns are VARCHAR; allowed values are enforced by the API.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_leave_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all leave management tables."""

    op.create_table(
        'teams',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('skills', sa.JSON(), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, comment='employee, team_lead, admin'),
        sa.Column('team_id', sa.Uuid(), sa.ForeignKey('teams.id', ondelete='SET NULL'), nullable=True),
        sa.Column('leave_balance', sa.Integer(), nullable=False, server_default='20'),
        sa.Column('sick_leave_balance', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('casual_leave_balance', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_team_id', 'users', ['team_id'])

    op.create_table(
        'leaves',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type', sa.String(20), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=False),
        sa.Column('to_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('team_lead_approval', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('admin_approval', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('team_lead_comment', sa.Text(), nullable=True),
        sa.Column('admin_comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_leaves_user_id', 'leaves', ['user_id'])
    op.create_index('ix_leaves_status', 'leaves', ['status'])
    op.create_index('ix_leaves_stage_queue', 'leaves', ['admin_approval', 'team_lead_approval'])
    op.create_index('ix_leaves_period', 'leaves', ['from_date', 'to_date'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('related_leave_id', sa.Uuid(), sa.ForeignKey('leaves.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'])
    op.create_index('ix_notifications_created', 'notifications', ['created_at'])

    op.create_table(
        'ai_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('request_masked', sa.Text(), nullable=False),
        sa.Column('response_data', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ai_logs_action_type', 'ai_logs', ['action_type'])
    op.create_index('ix_ai_logs_created_at', 'ai_logs', ['created_at'])


def downgrade() -> None:
    """Drop all leave management tables."""
    op.drop_table('ai_logs')
    op.drop_table('notifications')
    op.drop_table('leaves')
    op.drop_table('users')
    op.drop_table('teams')

"""initial schema: events, notifications, push registrations, server metadata

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1a2b3c4d5e6f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('hook_event_name', sa.String(length=100), nullable=False),
        sa.Column('notification_type', sa.String(length=100), nullable=True),
        sa.Column('tool_name', sa.String(length=255), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('prompt', sa.String(length=200), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('event_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_events_session_id', 'events', ['session_id'])
    op.create_index('ix_events_device_id', 'events', ['device_id'])
    op.create_index('ix_events_received_at', 'events', ['received_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('payload_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_session_id', 'notifications', ['session_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])

    op.create_table(
        'push_registrations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('token', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('environment', sa.String(length=20), nullable=False, server_default='production'),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_confirmed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('ix_push_registrations_platform', 'push_registrations', ['platform'])

    op.create_table(
        'server_metadata',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('sa_orm_sentinel', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('server_metadata')
    op.drop_index('ix_push_registrations_platform', table_name='push_registrations')
    op.drop_table('push_registrations')
    op.drop_index('ix_notifications_created_at', table_name='notifications')
    op.drop_index('ix_notifications_session_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_events_received_at', table_name='events')
    op.drop_index('ix_events_device_id', table_name='events')
    op.drop_index('ix_events_session_id', table_name='events')
    op.drop_table('events')

"""Initial schema: users, events and rsvps

Revision ID: 0001
Revises: 
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

role_enum = sa.Enum('user', 'admin', name='roleenum')
category_enum = sa.Enum('party', 'meeting', 'conference', 'wedding', 'birthday', 'other', name='eventcategory')
status_enum = sa.Enum('active', 'cancelled', 'completed', name='eventstatus')
response_enum = sa.Enum('Yes', 'No', 'Maybe', name='rsvpresponse')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('role', role_enum, nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('time', sa.String(20), nullable=False),
        sa.Column('location', sa.String(100), nullable=False),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('invite_token', sa.String(36), nullable=False, unique=True),
        sa.Column('max_attendees', sa.Integer, nullable=True),
        sa.Column('is_public', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('category', category_enum, nullable=False, server_default='other'),
        sa.Column('status', status_enum, nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    )
    op.create_index('idx_event_date', 'events', ['date'])
    op.create_index('idx_event_creator', 'events', ['created_by'])
    op.create_index('idx_event_created_at', 'events', ['created_at'])
    op.create_index('idx_event_category', 'events', ['category'])
    op.create_index('idx_event_status', 'events', ['status'])

    op.create_table(
        'rsvps',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_id', sa.Uuid(), sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('response', response_enum, nullable=False),
        sa.Column('message', sa.String(200), nullable=False, server_default=''),
        sa.Column('plus_ones', sa.Integer, nullable=False, server_default='0'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_user_rsvp')
    )
    op.create_index('idx_rsvp_user', 'rsvps', ['user_id'])
    op.create_index('idx_rsvp_event', 'rsvps', ['event_id'])


def downgrade() -> None:
    op.drop_table('rsvps')
    op.drop_table('events')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (response_enum, status_enum, category_enum, role_enum):
        enum_type.drop(bind, checkfirst=True)

"""Create users, friend graph and notification tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2025-09-02 18:41:07.512344

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

friend_request_status_enum = postgresql.ENUM(
    'pending', 'accepted', 'rejected', 'cancelled', name='friendrequeststatus', create_type=False
)


def upgrade() -> None:
    """Create the tables behind profiles, friendships and notifications.

    Friend edges are stored lowest-id-first, so a plain unique constraint
    covers both directions. Pending requests are unique per unordered pair
    through a partial index on the canonical pair columns.
    """
    friend_request_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('display_name', sa.String(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_picture', sa.String(), nullable=True),
        sa.Column('top8', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'friend_requests',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('requester', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pair_low', sa.String(), nullable=False),
        sa.Column('pair_high', sa.String(), nullable=False),
        sa.Column('status', friend_request_status_enum, nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('requester <> recipient', name='ck_friend_requests_not_self'),
    )
    op.create_index('ix_friend_requests_id', 'friend_requests', ['id'])
    op.create_index('ix_friend_requests_requester', 'friend_requests', ['requester'])
    op.create_index('ix_friend_requests_recipient', 'friend_requests', ['recipient'])
    op.create_index(
        'uq_friend_requests_pending_pair',
        'friend_requests',
        ['pair_low', 'pair_high'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'friends',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_a', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_b', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('user_a', 'user_b', name='uq_friends_pair'),
        sa.CheckConstraint('user_a < user_b', name='ck_friends_canonical_order'),
    )
    op.create_index('ix_friends_id', 'friends', ['id'])
    op.create_index('ix_friends_user_a', 'friends', ['user_a'])
    op.create_index('ix_friends_user_b', 'friends', ['user_b'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('actor', sa.String(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    """Drop the tables in reverse dependency order, then the status enum."""
    op.drop_table('notifications')
    op.drop_table('friends')
    op.drop_table('friend_requests')
    op.drop_table('users')
    friend_request_status_enum.drop(op.get_bind(), checkfirst=True)

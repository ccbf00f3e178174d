"""create users, joint account, chat and notification tables

Revision ID: a7c3e91f0b24
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a7c3e91f0b24'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', sa.String(36), primary_key=True)


def _account_fk() -> sa.Column:
    return sa.Column(
        'joint_account_id', sa.String(36),
        sa.ForeignKey('joint_accounts.id', ondelete='CASCADE'), nullable=False, index=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('primary_currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        'push_subscriptions',
        _id(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('provider', sa.String(10), nullable=False, server_default='vapid'),
        sa.Column('endpoint', sa.Text(), nullable=True, unique=True),
        sa.Column('p256dh', sa.Text(), nullable=True),
        sa.Column('auth', sa.Text(), nullable=True),
        sa.Column('fcm_token', sa.Text(), nullable=True, unique=True),
        sa.Column('platform', sa.String(20), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'joint_accounts',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('primary_currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('admin_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('invite_code', sa.String(8), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        'joint_account_members',
        _id(),
        _account_fk(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role', sa.String(10), nullable=False),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('joint_account_id', 'user_id', name='uq_joint_account_member'),
    )

    op.create_table(
        'joint_account_invites',
        _id(),
        _account_fk(),
        sa.Column('invited_email', sa.String(255), nullable=False, index=True),
        sa.Column('invited_by_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(10), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('responded_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index(
        'uq_joint_account_invite_pending',
        'joint_account_invites',
        ['joint_account_id', 'invited_email'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        'transactions',
        _id(),
        _account_fk(),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('category', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('added_by_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('added_by_user_name', sa.String(255), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'goals',
        _id(),
        _account_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('target_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('current_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('milestone_reached', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )

    op.create_table(
        'subscriptions',
        _id(),
        _account_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('cycle', sa.String(10), nullable=False),
        sa.Column('next_billing_date', sa.Date(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'chat_messages',
        _id(),
        _account_fk(),
        sa.Column('sender_id', sa.String(36), nullable=True),
        sa.Column('sender_name', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False, server_default='text'),
        sa.Column('payload_json', postgresql.JSONB(), nullable=True),
        sa.Column('split_request_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )

    op.create_table(
        'chat_message_reads',
        _id(),
        sa.Column('message_id', sa.String(36), sa.ForeignKey('chat_messages.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('user_id', sa.String(36), nullable=False, index=True),
        sa.Column('read_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', name='uq_chat_message_read'),
    )

    op.create_table(
        'split_requests',
        _id(),
        _account_fk(),
        sa.Column('requester_id', sa.String(36), nullable=False),
        sa.Column('requester_name', sa.String(255), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('split_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('transaction_id', sa.String(36), nullable=True),
        sa.Column('status', sa.String(10), nullable=False, server_default='active'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'split_participants',
        _id(),
        sa.Column('split_request_id', sa.String(36), sa.ForeignKey('split_requests.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(10), nullable=False, server_default='pending'),
        sa.Column('responded_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint('split_request_id', 'user_id', name='uq_split_participant'),
    )

    op.create_table(
        'notifications',
        _id(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data_json', postgresql.JSONB(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('split_participants')
    op.drop_table('split_requests')
    op.drop_table('chat_message_reads')
    op.drop_table('chat_messages')
    op.drop_table('subscriptions')
    op.drop_table('goals')
    op.drop_table('transactions')
    op.drop_index('uq_joint_account_invite_pending', table_name='joint_account_invites')
    op.drop_table('joint_account_invites')
    op.drop_table('joint_account_members')
    op.drop_table('joint_accounts')
    op.drop_table('push_subscriptions')
    op.drop_table('users')

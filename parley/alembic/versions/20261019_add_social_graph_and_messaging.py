"""add follow, block, conversation and message tables

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-19 09:30:00.000000

Pair uniqueness on user_follows, user_blocks and conversations is what makes
concurrent follow/block/first-contact requests converge on a single row.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '2b3c4d5e6f7a'
down_revision: Union[str, None] = '1a2b3c4d5e6f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BIGINT_ID = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'user_follows',
        sa.Column('id', BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column('follower_id', sa.BigInteger(), nullable=False),
        sa.Column('followed_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['follower_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['followed_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('follower_id', 'followed_id', name='uq_user_follows_follower_followed'),
        sa.CheckConstraint('follower_id <> followed_id', name='ck_user_follows_not_self'),
    )
    op.create_index('ix_user_follows_follower_id', 'user_follows', ['follower_id'])
    op.create_index('ix_user_follows_followed_id', 'user_follows', ['followed_id'])

    op.create_table(
        'user_blocks',
        sa.Column('id', BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column('blocker_id', sa.BigInteger(), nullable=False),
        sa.Column('blocked_id', sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['blocker_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['blocked_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uq_user_blocks_blocker_blocked'),
        sa.CheckConstraint('blocker_id <> blocked_id', name='ck_user_blocks_not_self'),
    )
    op.create_index('ix_user_blocks_blocker_id', 'user_blocks', ['blocker_id'])
    op.create_index('ix_user_blocks_blocked_id', 'user_blocks', ['blocked_id'])

    op.create_table(
        'conversations',
        sa.Column('id', BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column('user_low_id', sa.BigInteger(), nullable=False),
        sa.Column('user_high_id', sa.BigInteger(), nullable=False),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_low_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_high_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_low_id', 'user_high_id', name='uq_conversations_user_low_user_high'),
        sa.CheckConstraint('user_low_id < user_high_id', name='ck_conversations_canonical_pair'),
    )
    op.create_index(
        'ix_conversations_user_low_last_message', 'conversations', ['user_low_id', 'last_message_at']
    )
    op.create_index(
        'ix_conversations_user_high_last_message', 'conversations', ['user_high_id', 'last_message_at']
    )

    op.create_table(
        'messages',
        sa.Column('id', BIGINT_ID, autoincrement=True, nullable=False),
        sa.Column('conversation_id', sa.BigInteger(), nullable=False),
        sa.Column('sender_id', sa.BigInteger(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_by_sender', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_by_recipient', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index(
        'ix_messages_conversation_created', 'messages', ['conversation_id', 'created_at', 'id']
    )


def downgrade() -> None:
    op.drop_index('ix_messages_conversation_created', table_name='messages')
    op.drop_index('ix_messages_sender_id', table_name='messages')
    op.drop_table('messages')
    op.drop_index('ix_conversations_user_high_last_message', table_name='conversations')
    op.drop_index('ix_conversations_user_low_last_message', table_name='conversations')
    op.drop_table('conversations')
    op.drop_index('ix_user_blocks_blocked_id', table_name='user_blocks')
    op.drop_index('ix_user_blocks_blocker_id', table_name='user_blocks')
    op.drop_table('user_blocks')
    op.drop_index('ix_user_follows_followed_id', table_name='user_follows')
    op.drop_index('ix_user_follows_follower_id', table_name='user_follows')
    op.drop_table('user_follows')

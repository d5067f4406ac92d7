"""Messaging core: conversations, messages, message_status

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'conversations',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('participant_low_id', sa.String(255), nullable=False),
        sa.Column('participant_high_id', sa.String(255), nullable=False),
        # Weak pointer into messages, deliberately without a foreign key
        sa.Column('last_message_id', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('participant_low_id', 'participant_high_id', name='uq_conversation_pair'),
        sa.CheckConstraint('participant_low_id < participant_high_id', name='ck_conversation_pair_order'),
    )
    op.create_index('ix_conversations_participant_low_id', 'conversations', ['participant_low_id'])
    op.create_index('ix_conversations_participant_high_id', 'conversations', ['participant_high_id'])
    op.create_index('ix_conversations_updated_at', 'conversations', ['updated_at'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('conversation_id', sa.Integer, sa.ForeignKey('conversations.id'), nullable=False),
        sa.Column('seq', sa.Integer, nullable=False),
        sa.Column('sender_id', sa.String(255), nullable=False),
        sa.Column('body', sa.Text, nullable=False),
        sa.Column('client_nonce', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='sent'),
        sa.UniqueConstraint('conversation_id', 'seq', name='uq_message_conversation_seq'),
        sa.UniqueConstraint('sender_id', 'client_nonce', name='uq_message_sender_nonce'),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])
    op.create_index('ix_messages_sender_id', 'messages', ['sender_id'])
    op.create_index('ix_messages_created_at', 'messages', ['created_at'])

    op.create_table(
        'message_status',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('message_id', sa.Integer, sa.ForeignKey('messages.id'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='delivered'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('message_id', 'user_id', name='uq_message_status_recipient'),
    )
    op.create_index('ix_message_status_message_id', 'message_status', ['message_id'])
    op.create_index('ix_message_status_user_id', 'message_status', ['user_id'])


def downgrade():
    op.drop_table('message_status')
    op.drop_table('messages')
    op.drop_table('conversations')

"""initial song cards schema

Revision ID: 3f9a1c2d7e80
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7e80'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create songs, lines, cards, progress, favorites and conversations."""
    op.create_table('songs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('artist', sa.String(length=100), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('cover_url', sa.Text(), nullable=True),
        sa.Column('source', sa.String(length=20), nullable=False, server_default='platform'),
        sa.Column('source_ref', sa.String(length=255), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('creator', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_songs_title', 'songs', ['title'])
    op.create_index('ix_songs_artist', 'songs', ['artist'])
    op.create_index('ix_songs_creator', 'songs', ['creator'])

    op.create_table('lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('song_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('content_ja', sa.Text(), nullable=False),
        sa.Column('content_zh', sa.Text(), nullable=True),
        sa.Column('furigana', sa.Text(), nullable=True),
        sa.Column('tokens', sa.Text(), nullable=True),
        sa.Column('start_time', sa.Integer(), nullable=True),
        sa.Column('end_time', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lines_song_id', 'lines', ['song_id'])
    op.create_index('lines_song_line_idx', 'lines', ['song_id', 'line_number'])

    op.create_table('cards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('line_id', sa.Integer(), nullable=False),
        sa.Column('word', sa.String(length=100), nullable=False),
        sa.Column('reading', sa.String(length=100), nullable=True),
        sa.Column('meaning', sa.Text(), nullable=False, server_default=''),
        sa.Column('part_of_speech', sa.String(length=20), nullable=False, server_default='other'),
        sa.Column('example_sentence', sa.Text(), nullable=True),
        sa.Column('example_translation', sa.Text(), nullable=True),
        sa.Column('word_start', sa.Integer(), nullable=True),
        sa.Column('word_end', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['line_id'], ['lines.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_cards_line_id', 'cards', ['line_id'])
    op.create_index('ix_cards_word', 'cards', ['word'])

    op.create_table('card_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user', sa.String(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='new'),
        sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('mastered_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user', 'card_id', name='card_progress_user_card_idx')
    )
    op.create_index('ix_card_progress_card_id', 'card_progress', ['card_id'])
    op.create_index('card_progress_status_idx', 'card_progress', ['user', 'status'])

    op.create_table('favorites',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user', sa.String(), nullable=False),
        sa.Column('line_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['line_id'], ['lines.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user', 'line_id', name='favorites_user_line_idx')
    )
    op.create_index('ix_favorites_user', 'favorites', ['user'])
    op.create_index('ix_favorites_line_id', 'favorites', ['line_id'])

    op.create_table('conversations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user', sa.String(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('song_id', sa.Integer(), nullable=True),
        sa.Column('purpose', sa.String(length=20), nullable=False, server_default='chat'),
        sa.Column('model', sa.String(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('total_tokens', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['song_id'], ['songs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_conversations_user', 'conversations', ['user'])

    op.create_table('conversation_messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('conversation_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('tokens', sa.Integer(), nullable=True),
        sa.Column('model', sa.String(), nullable=True),
        sa.Column('finish_reason', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_conversation_messages_conversation_id', 'conversation_messages', ['conversation_id'])


def downgrade() -> None:
    """Drop all song cards tables."""
    op.drop_table('conversation_messages')
    op.drop_table('conversations')
    op.drop_table('favorites')
    op.drop_table('card_progress')
    op.drop_table('cards')
    op.drop_table('lines')
    op.drop_table('songs')

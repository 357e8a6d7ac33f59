"""create decks, deckviews and deck_info tables

Revision ID: 5d2c8e1f7a90
Revises:
Create Date: 2026-10-18 09:12:40.113207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5d2c8e1f7a90'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'decks',
        sa.Column('deckcode', sa.Text(), nullable=False),
        sa.Column('shortid', sa.Text(), nullable=False),
        sa.Column('image', sa.LargeBinary(), nullable=True),
        sa.Column('image_version', sa.Text(), nullable=True),
        sa.Column('image_rendering', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('deckcode'),
        sa.UniqueConstraint('shortid', name='uq_decks_shortid'),
        schema='public',
    )
    # Only rows stuck in rendering are scanned by the stale-render sweep
    op.create_index(
        'ix_decks_rendering_updated_at',
        'decks',
        ['updated_at'],
        postgresql_where=sa.text('image_rendering'),
        schema='public',
    )

    op.create_table(
        'deckviews',
        sa.Column('deckcode', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.Text(), nullable=False),
        sa.Column('view_count', sa.Integer(), server_default='1', nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('deckcode', 'ip_address', name='pk_deckviews'),
        schema='public',
    )
    op.create_index('ix_deckviews_updated_at', 'deckviews', ['updated_at'], schema='public')

    op.create_table(
        'deck_info',
        sa.Column('deckcode', sa.Text(), nullable=False),
        sa.Column('faction', sa.Text(), nullable=True),
        sa.Column('total_count', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('deckcode'),
        schema='public',
    )
    op.create_index('ix_deck_info_faction_total', 'deck_info', ['faction', 'total_count'], schema='public')


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_deck_info_faction_total', table_name='deck_info', schema='public')
    op.drop_table('deck_info', schema='public')
    op.drop_index('ix_deckviews_updated_at', table_name='deckviews', schema='public')
    op.drop_table('deckviews', schema='public')
    op.drop_index('ix_decks_rendering_updated_at', table_name='decks', schema='public')
    op.drop_table('decks', schema='public')

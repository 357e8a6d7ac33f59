# deckshare/models/deck_table.py
# Deck registry: one row per normalized deckcode

from sqlalchemy import Table, Column, Text, Boolean, LargeBinary, TIMESTAMP, UniqueConstraint, Index, func, false, text

from deckshare.db.base import metadata


decks = Table(
    'decks',
    metadata,
    Column('deckcode', Text, primary_key=True),
    Column('shortid', Text, nullable=False),
    Column('image', LargeBinary, nullable=True),
    Column('image_version', Text, nullable=True),
    Column('image_rendering', Boolean, nullable=False, server_default=false()),
    Column('created_at', TIMESTAMP(timezone=True), nullable=False, server_default=func.now()),
    Column('updated_at', TIMESTAMP(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint('shortid', name='uq_decks_shortid'),
    # partial index keeps the stale-render sweep cheap
    Index('ix_decks_rendering_updated_at', 'updated_at', postgresql_where=text('image_rendering')),
    schema='public',
)

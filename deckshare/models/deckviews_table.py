# deckshare/models/deckviews_table.py
# View counters per (deckcode, client address) and derived deck info

from sqlalchemy import Table, Column, Integer, Text, TIMESTAMP, PrimaryKeyConstraint, Index, func

from deckshare.db.base import metadata


deckviews = Table(
    'deckviews',
    metadata,
    Column('deckcode', Text, nullable=False),
    Column('ip_address', Text, nullable=False),
    Column('view_count', Integer, nullable=False, server_default='1'),
    Column('updated_at', TIMESTAMP(timezone=True), nullable=False, server_default=func.now()),
    PrimaryKeyConstraint('deckcode', 'ip_address', name='pk_deckviews'),
    Index('ix_deckviews_updated_at', 'updated_at'),
    schema='public',
)


deck_info = Table(
    'deck_info',
    metadata,
    Column('deckcode', Text, primary_key=True),
    Column('faction', Text, nullable=True),
    Column('total_count', Integer, nullable=False),
    Index('ix_deck_info_faction_total', 'faction', 'total_count'),
    schema='public',
)

# deckshare/repositories/deckviews_repository.py
# View counters grouped by deckcode

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from deckshare.constants import DECK_SIZE
from deckshare.db.base import get_session
from deckshare.models.deckviews_table import deck_info, deckviews


class DeckviewsRepository:
    """Per-viewer counters; a deck's view count is its number of distinct viewers."""

    async def increment_view(self, deckcode: str, ip_address: str) -> None:
        now = datetime.now(timezone.utc)
        stmt = insert(deckviews).values(
            deckcode=deckcode,
            ip_address=ip_address,
            view_count=1,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[deckviews.c.deckcode, deckviews.c.ip_address],
            set_={"view_count": deckviews.c.view_count + 1, "updated_at": now},
        )
        async with get_session() as session:
            await session.execute(stmt)
            await session.commit()

    async def save_deck_info(self, deckcode: str, faction: Optional[str], total_count: int) -> None:
        stmt = insert(deck_info).values(deckcode=deckcode, faction=faction, total_count=total_count)
        stmt = stmt.on_conflict_do_nothing(index_elements=[deck_info.c.deckcode])
        async with get_session() as session:
            await session.execute(stmt)
            await session.commit()

    async def most_viewed(
        self,
        count: int,
        since_days_ago: Optional[int] = None,
        factions: Optional[Sequence[str]] = None,
    ) -> list[dict]:
        viewers = func.count(deckviews.c.deckcode).label("view_count")
        stmt = (
            select(deckviews.c.deckcode, viewers)
            .join(deck_info, deck_info.c.deckcode == deckviews.c.deckcode)
            .where(deck_info.c.total_count == DECK_SIZE)
            .group_by(deckviews.c.deckcode)
            .order_by(viewers.desc(), deckviews.c.deckcode)
            .limit(count)
        )
        if factions:
            stmt = stmt.where(deck_info.c.faction.in_(list(factions)))
        if since_days_ago:
            since = datetime.now(timezone.utc) - timedelta(days=abs(since_days_ago))
            stmt = stmt.where(deckviews.c.updated_at >= since)

        async with get_session() as session:
            result = await session.execute(stmt)
            return [
                {"deckcode": r["deckcode"], "view_count": int(r["view_count"])}
                for r in result.mappings().all()
            ]

    async def view_counts(self, deckcodes: Sequence[str]) -> dict[str, int]:
        if not deckcodes:
            return {}
        stmt = (
            select(deckviews.c.deckcode, func.count(deckviews.c.deckcode))
            .where(deckviews.c.deckcode.in_(list(deckcodes)))
            .group_by(deckviews.c.deckcode)
        )
        async with get_session() as session:
            result = await session.execute(stmt)
            return {deckcode: int(n) for deckcode, n in result.fetchall()}

# deckshare/services/views_service.py

from __future__ import annotations

import logging
from typing import Optional, Sequence

from redis.exceptions import RedisError

from deckshare.domain.deckcode import DeckcodeError, parse_deckcode
from deckshare.repositories.deckviews_repository import DeckviewsRepository
from deckshare.utils.cache import Cache

logger = logging.getLogger(__name__)


class ViewsService:
    """View counting and the "most viewed" listing."""

    def __init__(self, repository: DeckviewsRepository, cache: Optional[Cache] = None):
        self._repo = repository
        self._cache = cache

    async def record_view(self, deckcode: str, client_address: str) -> bool:
        """Count a view; unreadable deck codes are ignored and return False."""
        try:
            parsed = parse_deckcode(deckcode)
        except DeckcodeError:
            return False
        await self._repo.save_deck_info(parsed.deckcode, parsed.primary_faction, parsed.total_count)
        await self._repo.increment_view(parsed.deckcode, client_address)
        return True

    async def most_viewed(
        self,
        count: int,
        since_days_ago: Optional[int] = None,
        factions: Optional[Sequence[str]] = None,
    ) -> list[dict]:
        factions = sorted({f.upper() for f in factions}) if factions else None
        key = Cache.build_key(
            "views:most_viewed",
            {"count": count, "since": since_days_ago or 0, "factions": factions or []},
        )
        if self._cache is not None:
            try:
                cached = await self._cache.get_json(key)
            except RedisError as e:
                logger.warning(f"most_viewed cache read failed: {e}")
                cached = None
            if cached is not None:
                return cached["items"]

        items = await self._repo.most_viewed(count, since_days_ago=since_days_ago, factions=factions)

        if self._cache is not None:
            try:
                await self._cache.set_json(key, {"items": items})
            except RedisError as e:
                logger.warning(f"most_viewed cache write failed: {e}")
        return items

    async def view_counts(self, deckcodes: Sequence[str]) -> dict[str, int]:
        unique = list(dict.fromkeys(deckcodes))
        counts = await self._repo.view_counts(unique)
        return {code: counts.get(code, 0) for code in unique}

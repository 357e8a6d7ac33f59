# deckshare/routers/views.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from deckshare.config import get_settings
from deckshare.repositories.deckviews_repository import DeckviewsRepository
from deckshare.schemas.views import DeckViewCount, MostViewedResponse
from deckshare.services.views_service import ViewsService
from deckshare.utils.cache import Cache


router = APIRouter(prefix="/views", tags=["Views"])


def get_views_service() -> ViewsService:
    return ViewsService(DeckviewsRepository(), cache=Cache(ttl_seconds=get_settings().MOST_VIEWED_CACHE_TTL))


@router.get("/most-viewed", response_model=MostViewedResponse)
async def most_viewed(
    count: int = Query(10, ge=1, le=100),
    since_days_ago: Optional[int] = Query(None, ge=1, le=3650),
    factions: Optional[List[str]] = Query(None),
    service: ViewsService = Depends(get_views_service),
) -> MostViewedResponse:
    items = await service.most_viewed(count, since_days_ago=since_days_ago, factions=factions)
    return MostViewedResponse(items=[DeckViewCount(**item) for item in items])


@router.get("", response_model=dict[str, int])
async def view_counts(
    deckcode: List[str] = Query(..., min_length=1, max_length=200),
    service: ViewsService = Depends(get_views_service),
) -> dict[str, int]:
    return await service.view_counts(deckcode)

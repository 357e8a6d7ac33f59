from __future__ import annotations

from pydantic import BaseModel


class DeckViewCount(BaseModel):
    deckcode: str
    view_count: int


class MostViewedResponse(BaseModel):
    items: list[DeckViewCount]

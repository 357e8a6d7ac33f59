from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeckRefOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shortid: str
    deckcode: str


class DeckOut(BaseModel):
    """Deck summary; the image itself is served by the image endpoint."""
    shortid: str
    deckcode: str
    image_version: Optional[str] = None
    image_rendering: bool = False
    has_image: bool = False
    image_fresh: bool = False


class EnsureDeckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deckcode_or_shortid: str = Field(..., alias="deckcodeOrShortid", min_length=1, max_length=512)


class ViewRecorded(BaseModel):
    deckcode: str
    counted: bool

# deckshare/domain/deck.py
# Deck record types and the image state derived from them

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class DeckRef:
    """Public handle of a deck: its short id and canonical code."""
    shortid: str
    deckcode: str


@dataclass(frozen=True)
class NoImage:
    pass


@dataclass(frozen=True)
class Rendering:
    pass


@dataclass(frozen=True)
class Ready:
    version: str
    image: bytes


ImageState = Union[NoImage, Rendering, Ready]


@dataclass(frozen=True)
class DeckRecord:
    deckcode: str
    shortid: str
    image: Optional[bytes] = None
    image_version: Optional[str] = None
    image_rendering: bool = False

    @property
    def ref(self) -> DeckRef:
        return DeckRef(shortid=self.shortid, deckcode=self.deckcode)

    def image_state(self, current_version: str) -> ImageState:
        """Fold the stored columns into one state.

        A fresh image wins over the rendering flag; an image tagged with
        another version counts as no image at all.
        """
        if self.image and self.image_version == current_version:
            return Ready(version=self.image_version, image=self.image)
        if self.image_rendering:
            return Rendering()
        return NoImage()

    def fresh_image(self, current_version: str) -> Optional[bytes]:
        state = self.image_state(current_version)
        return state.image if isinstance(state, Ready) else None

# deckshare/domain/store.py
# Record store contract consumed by the allocator, coordinator and poller

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol

from deckshare.domain.deck import DeckRecord, DeckRef


class DeckStore(Protocol):
    """Keyed deck storage with atomic single-row writes.

    Implementations must raise ``ShortidCollisionError`` when a write would
    give two decks the same shortid.
    """

    async def find_by_code(self, deckcode: str) -> Optional[DeckRecord]: ...

    async def find_by_code_or_shortid(self, value: str) -> Optional[DeckRef]: ...

    async def upsert(
        self,
        deckcode: str,
        create_fields: Mapping[str, Any],
        update_fields: Mapping[str, Any],
    ) -> DeckRecord: ...

    async def update(self, deckcode: str, fields: Mapping[str, Any]) -> DeckRecord: ...

    async def existing_shortids(self, candidates: Iterable[str]) -> set[str]: ...

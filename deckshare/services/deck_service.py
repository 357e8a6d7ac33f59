# deckshare/services/deck_service.py

from __future__ import annotations

from functools import lru_cache
from typing import Callable, Optional

from deckshare.config import Settings, get_settings
from deckshare.domain.deck import DeckRecord, DeckRef
from deckshare.domain.deckcode import DeckcodeError, ParsedDeck, parse_deckcode
from deckshare.domain.store import DeckStore
from deckshare.repositories.deck_repository import DeckRepository
from deckshare.services.render_backends import build_render_backends
from deckshare.services.render_coordinator import RenderCoordinator
from deckshare.services.render_poller import RenderPoller
from deckshare.services.shortid_allocator import ShortidAllocator
from deckshare.utils.logger import log_info


class DeckService:
    """Deck registry operations: lookup, creation and deck images."""

    def __init__(
        self,
        store: DeckStore,
        allocator: ShortidAllocator,
        coordinator: RenderCoordinator,
        poller: RenderPoller,
        parser: Callable[[str], ParsedDeck] = parse_deckcode,
    ):
        self._store = store
        self._allocator = allocator
        self._coordinator = coordinator
        self._poller = poller
        self._parse = parser

    async def get_deck(self, deckcode: str) -> Optional[DeckRecord]:
        return await self._store.find_by_code(deckcode)

    async def resolve_deck(self, deckcode_or_shortid: str) -> Optional[DeckRef]:
        return await self._store.find_by_code_or_shortid(deckcode_or_shortid)

    async def ensure_deck(self, deckcode_or_shortid: str) -> Optional[DeckRef]:
        """Resolve the input, registering it as a new deck if it is a valid code.

        Returns None for input that is neither a known deck nor a valid code.
        """
        existing = await self.resolve_deck(deckcode_or_shortid)
        if existing:
            return existing

        try:
            parsed = self._parse(deckcode_or_shortid)
        except DeckcodeError as e:
            log_info(f"ensure_deck: rejected input {deckcode_or_shortid!r}: {e}")
            return None

        async def _create(shortid: str):
            # A concurrent creator of the same deckcode wins; its shortid is kept
            return await self._store.upsert(
                parsed.deckcode,
                create_fields={"shortid": shortid},
                update_fields={},
            )

        record = await self._allocator.insert_with_shortid(_create)
        log_info(f"ensure_deck: {record.deckcode} -> {record.shortid}")
        return record.ref

    async def get_deck_image(self, deckcode: str) -> Optional[bytes]:
        return await self._poller.wait_for_image(deckcode)

    async def render_deck_image(self, deckcode: str) -> Optional[bytes]:
        return await self._coordinator.render(deckcode)

    async def aclose(self) -> None:
        await self._coordinator.aclose()


def build_deck_service(settings: Settings, store: Optional[DeckStore] = None) -> DeckService:
    store = store or DeckRepository()
    allocator = ShortidAllocator(
        store,
        batch_size=settings.SHORTID_BATCH_SIZE,
        initial_length=settings.SHORTID_INITIAL_LENGTH,
        max_length=settings.SHORTID_MAX_LENGTH,
    )
    coordinator = RenderCoordinator(
        store,
        allocator,
        build_render_backends(settings),
        image_version=settings.IMAGE_VERSION,
        cancel_losers=settings.RENDER_CANCEL_LOSERS,
        breaker_failure_threshold=settings.BREAKER_FAILURE_THRESHOLD,
        breaker_recovery_timeout=settings.BREAKER_RECOVERY_TIMEOUT,
    )
    poller = RenderPoller(
        store,
        image_version=settings.IMAGE_VERSION,
        max_attempts=settings.POLL_MAX_ATTEMPTS,
        poll_interval_ms=settings.POLL_INTERVAL_MS,
    )
    return DeckService(store, allocator, coordinator, poller)


@lru_cache
def get_deck_service() -> DeckService:
    """Process-wide service; in-flight renders are shared through it."""
    return build_deck_service(get_settings())


async def close_deck_service() -> None:
    """Close the process-wide service if it was built."""
    if get_deck_service.cache_info().currsize:
        await get_deck_service().aclose()
        get_deck_service.cache_clear()

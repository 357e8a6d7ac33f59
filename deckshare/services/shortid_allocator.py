# deckshare/services/shortid_allocator.py

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from nanoid import generate

from deckshare.constants import SHORTID_ALPHABET
from deckshare.domain.store import DeckStore
from deckshare.middleware.error_handler import ShortidCollisionError, ShortidSpaceExhaustedError
from deckshare.observability.metrics import SHORTID_COLLISIONS, SHORTID_ROUNDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ShortidAllocator:
    """
    Optimistic short id allocation.

    Each round draws a batch of random candidates, asks the store which are
    taken and returns the first free one. A fully taken batch widens the id
    by one character, so the space grows while the batch size stays fixed.
    Nothing is reserved: the store's unique constraint decides at insert time.
    """

    def __init__(
        self,
        store: DeckStore,
        batch_size: int = 15,
        initial_length: int = 3,
        max_length: int = 12,
        alphabet: str = SHORTID_ALPHABET,
    ):
        if initial_length > max_length:
            raise ValueError("initial_length must not exceed max_length")
        self._store = store
        self.batch_size = batch_size
        self.initial_length = initial_length
        self.max_length = max_length
        self.alphabet = alphabet

    async def allocate(self, length: Optional[int] = None) -> str:
        length = self.initial_length if length is None else length
        rounds = 0
        while length <= self.max_length:
            rounds += 1
            candidates = [generate(self.alphabet, length) for _ in range(self.batch_size)]
            taken = await self._store.existing_shortids(set(candidates))
            for candidate in candidates:
                if candidate not in taken:
                    SHORTID_ROUNDS.observe(rounds)
                    return candidate
            logger.info(f"All {self.batch_size} short id candidates of length {length} taken, widening")
            length += 1
        raise ShortidSpaceExhaustedError(self.max_length)

    async def insert_with_shortid(self, insert: Callable[[str], Awaitable[T]]) -> T:
        """Run ``insert`` with a fresh short id, re-allocating on collisions.

        Every lost race starts the next allocation one character wider, so the
        retries end once the allocator runs out of lengths.
        """
        length = self.initial_length
        while True:
            shortid = await self.allocate(length)
            try:
                return await insert(shortid)
            except ShortidCollisionError:
                SHORTID_COLLISIONS.inc()
                logger.warning(f"Short id '{shortid}' taken at insert time, retrying")
                length = max(length, len(shortid)) + 1

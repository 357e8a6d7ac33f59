# deckshare/services/render_poller.py

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from deckshare.domain.deck import NoImage, Ready
from deckshare.domain.store import DeckStore
from deckshare.observability.metrics import IMAGE_POLLS


class RenderPoller:
    """
    Read-only wait for a deck image.

    Polls while another worker has the deck marked as rendering and gives
    up after ``max_attempts * poll_interval_ms``. Never starts a render.
    """

    def __init__(
        self,
        store: DeckStore,
        image_version: str,
        max_attempts: int = 10,
        poll_interval_ms: int = 500,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = store
        self.image_version = image_version
        self.max_attempts = max_attempts
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep

    async def wait_for_image(
        self,
        deckcode: str,
        max_attempts: Optional[int] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> Optional[bytes]:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        interval = self.poll_interval_ms if poll_interval_ms is None else poll_interval_ms

        for _ in range(attempts):
            record = await self._store.find_by_code(deckcode)
            state = record.image_state(self.image_version) if record else NoImage()

            if isinstance(state, Ready):
                IMAGE_POLLS.labels(result="hit").inc()
                return state.image
            if isinstance(state, NoImage):
                # nobody is rendering it, waiting would not help
                IMAGE_POLLS.labels(result="idle").inc()
                return None
            await self._sleep(interval / 1000)

        IMAGE_POLLS.labels(result="timeout").inc()
        return None

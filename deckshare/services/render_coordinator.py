# deckshare/services/render_coordinator.py
"""
Render coordinator: owns the image state transitions of a deck.

    NoImage/Stale/Rendering --ensure_render_started--> Rendering
    Rendering --first backend success--> Ready(version)
    Rendering --all backends failed / error--> previous image, flag cleared

The rendering flag is cleared on every path out of ``render``, including
exceptions and cancellation. Concurrent renders of one deckcode inside this
process share a single execution; renders in other processes are not
coordinated and the last successful write wins.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Optional, Sequence

from opentelemetry import trace

from deckshare.domain.deck import DeckRef
from deckshare.domain.store import DeckStore
from deckshare.middleware.circuit_breaker import CircuitBreaker, CircuitBreakerError
from deckshare.observability.metrics import RENDER_BACKEND_RESULTS, RENDER_DURATION, RENDER_REQUESTS
from deckshare.services.render_backends import RenderBackend
from deckshare.services.shortid_allocator import ShortidAllocator
from deckshare.utils.logger import log_exception, log_info

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Losing backend calls keep running after the race; hold them until done
_background_calls: set[asyncio.Task] = set()


class RenderCoordinator:

    def __init__(
        self,
        store: DeckStore,
        allocator: ShortidAllocator,
        backends: Sequence[RenderBackend],
        image_version: str,
        cancel_losers: bool = False,
        breaker_failure_threshold: int = 5,
        breaker_recovery_timeout: float = 30.0,
    ):
        self._store = store
        self._allocator = allocator
        self._backends = list(backends)
        self.image_version = image_version
        self.cancel_losers = cancel_losers
        self._breakers = {
            b.name: CircuitBreaker(
                b.name,
                failure_threshold=breaker_failure_threshold,
                recovery_timeout=breaker_recovery_timeout,
            )
            for b in self._backends
        }
        self._inflight: dict[str, asyncio.Task] = {}

    async def ensure_render_started(self, deckcode: str) -> DeckRef:
        """Mark the deck as rendering, creating it with a new shortid if unknown.

        Re-entrant: an existing flag is simply set again, so a render that
        crashed earlier never blocks a new one.
        """
        async def _upsert(shortid: str):
            return await self._store.upsert(
                deckcode,
                create_fields={"shortid": shortid, "image_rendering": True},
                update_fields={"image_rendering": True},
            )

        record = await self._allocator.insert_with_shortid(_upsert)
        return record.ref

    async def render(self, deckcode: str) -> Optional[bytes]:
        """Render and store the deck image; None when no backend succeeded."""
        task = self._inflight.get(deckcode)
        if task is None:
            task = asyncio.create_task(self._render(deckcode))
            self._inflight[deckcode] = task
            task.add_done_callback(partial(self._forget, deckcode))
        else:
            log_info(f"Render of {deckcode} already in flight, joining it")
        # A cancelled caller must not cancel the shared render
        return await asyncio.shield(task)

    async def aclose(self) -> None:
        """Close backend HTTP clients."""
        for backend in self._backends:
            close = getattr(backend, "aclose", None)
            if close is not None:
                await close()

    def _forget(self, deckcode: str, task: asyncio.Task) -> None:
        if self._inflight.get(deckcode) is task:
            del self._inflight[deckcode]

    async def _render(self, deckcode: str) -> Optional[bytes]:
        started = time.monotonic()
        with tracer.start_as_current_span("render_deck_image") as span:
            span.set_attribute("deck.code", deckcode)
            deck = await self.ensure_render_started(deckcode)
            span.set_attribute("deck.shortid", deck.shortid)

            image: Optional[bytes] = None
            persisted = False
            outcome = "failed"
            try:
                image = await self._race(deck)
                if image is not None:
                    await self._store.update(
                        deck.deckcode,
                        {"image": image, "image_version": self.image_version, "image_rendering": False},
                    )
                    persisted = True
                    outcome = "success"
            except Exception as e:
                outcome = "error"
                log_exception(e, f"render of {deck.deckcode}")
            finally:
                if not persisted:
                    await self._store.update(deck.deckcode, {"image_rendering": False})
                RENDER_DURATION.observe(time.monotonic() - started)

            RENDER_REQUESTS.labels(outcome=outcome).inc()
            span.set_attribute("render.outcome", outcome)
            log_info(f"Render of {deck.deckcode} ({deck.shortid}): {outcome}")
            return image if persisted else None

    async def _race(self, deck: DeckRef) -> Optional[bytes]:
        """Start every backend at once and return the first usable image."""
        pending = {asyncio.create_task(self._call_backend(b, deck)) for b in self._backends}
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if not task.cancelled() and task.result() is not None:
                        return task.result()
            return None
        finally:
            for task in pending:
                self._release(task)

    def _release(self, task: asyncio.Task) -> None:
        if self.cancel_losers:
            task.cancel()
            return
        _background_calls.add(task)
        task.add_done_callback(_background_calls.discard)

    async def _call_backend(self, backend: RenderBackend, deck: DeckRef) -> Optional[bytes]:
        """One race branch. Failures are logged and reported as None."""
        try:
            async with self._breakers[backend.name].guard():
                image = await backend.render(deck)
        except CircuitBreakerError as e:
            RENDER_BACKEND_RESULTS.labels(backend=backend.name, result="rejected").inc()
            logger.info(str(e))
            return None
        except Exception as e:
            RENDER_BACKEND_RESULTS.labels(backend=backend.name, result="failed").inc()
            logger.warning(f"Render backend '{backend.name}' failed for {deck.deckcode}: {type(e).__name__}: {e}")
            return None
        if not image:
            RENDER_BACKEND_RESULTS.labels(backend=backend.name, result="failed").inc()
            return None
        RENDER_BACKEND_RESULTS.labels(backend=backend.name, result="won").inc()
        return image

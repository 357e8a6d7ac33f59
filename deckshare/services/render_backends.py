# deckshare/services/render_backends.py
# HTTP render backends raced by the render coordinator

from __future__ import annotations

from typing import Callable, Optional, Protocol
from urllib.parse import quote, urlencode

import httpx

from deckshare.config import Settings
from deckshare.constants import URLBOX_ENDPOINT
from deckshare.domain.deck import DeckRef


class RenderBackendError(Exception):
    """A backend answered, but not with a usable image."""


class RenderBackend(Protocol):
    name: str

    async def render(self, deck: DeckRef) -> bytes: ...


class HttpRenderBackend:
    """GET an image from a URL derived from the deck.

    One ``httpx.AsyncClient`` is kept per backend so connections are pooled
    across renders. A client passed in is used as is and not closed here.
    """

    def __init__(
        self,
        name: str,
        url_for: Callable[[DeckRef], str],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.name = name
        self._url_for = url_for
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def render(self, deck: DeckRef) -> bytes:
        response = await self._get_client().get(self._url_for(deck))
        response.raise_for_status()
        if not response.content:
            raise RenderBackendError(f"{self.name} returned an empty body")
        return response.content

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"HttpRenderBackend({self.name!r})"


def internal_render_url(site_url: str, deck: DeckRef) -> str:
    return f"{site_url}/api/render/{quote(deck.deckcode, safe='')}"


def deck_short_url(site_url: str, shortid: str) -> str:
    return f"{site_url}/{shortid}"


def urlbox_render_url(site_url: str, api_key: str, deck: DeckRef) -> str:
    # The snapshot view of the deck page is screenshotted by urlbox
    target = deck_short_url(site_url, deck.shortid) + "?snapshot=1"
    query = urlencode({
        "url": target,
        "selector": "#snap",
        "wait_timeout": 3000,
        "wait_until": "domloaded",
    })
    return f"{URLBOX_ENDPOINT}/{api_key}/png?{query}"


def build_render_backends(settings: Settings) -> list[RenderBackend]:
    """Internal renderer first; urlbox only when enabled and configured."""
    backends: list[RenderBackend] = [
        HttpRenderBackend(
            "internal",
            lambda deck: internal_render_url(settings.SITE_URL, deck),
            timeout=settings.RENDER_TIMEOUT_SECONDS,
        )
    ]
    if settings.USE_URLBOX_RENDER and settings.URLBOX_API_KEY:
        backends.append(
            HttpRenderBackend(
                "urlbox",
                lambda deck: urlbox_render_url(settings.SITE_URL, settings.URLBOX_API_KEY, deck),
                timeout=settings.RENDER_TIMEOUT_SECONDS,
            )
        )
    return backends

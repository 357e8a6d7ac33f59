# tests/conftest.py
# Shared fixtures: an in-memory deck store, scripted render backends and
# deck codes built byte by byte.

import asyncio
import base64
from typing import Optional

import pytest

from deckshare.domain.deck import DeckRecord, DeckRef
from deckshare.middleware.error_handler import NotFoundError, ShortidCollisionError


def encode_deckcode(data: list[int]) -> str:
    return base64.b32encode(bytes(data)).decode("ascii").rstrip("=")


# 13 DE cards x3 + 1 FR card x1 = 40 cards
FULL_DECK_BYTES = [0x12, 1, 13, 1, 0, *range(1, 14), 0, 1, 1, 1, 1, 20]
# 2 IO cards x3 = 6 cards
SMALL_DECK_BYTES = [0x11, 1, 2, 1, 2, 5, 7, 0, 0]


class InMemoryDeckStore:
    """DeckStore on a dict. Each call yields to the loop once, then runs atomically."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.reserved_shortids: set[str] = set()
        self.shortid_queries = 0
        self.reads = 0
        self.updates: list[tuple[str, dict]] = []

    def seed(self, deckcode: str, shortid: str, **fields) -> DeckRecord:
        self.rows[deckcode] = {
            "deckcode": deckcode,
            "shortid": shortid,
            "image": None,
            "image_version": None,
            "image_rendering": False,
            **fields,
        }
        return DeckRecord(**self.rows[deckcode])

    def record(self, deckcode: str) -> Optional[DeckRecord]:
        row = self.rows.get(deckcode)
        return DeckRecord(**row) if row else None

    def _taken(self) -> set[str]:
        return {r["shortid"] for r in self.rows.values()} | self.reserved_shortids

    async def find_by_code(self, deckcode):
        await asyncio.sleep(0)
        self.reads += 1
        return self.record(deckcode)

    async def find_by_code_or_shortid(self, value):
        await asyncio.sleep(0)
        for row in self.rows.values():
            if value in (row["deckcode"], row["shortid"]):
                return DeckRef(shortid=row["shortid"], deckcode=row["deckcode"])
        return None

    async def upsert(self, deckcode, create_fields, update_fields):
        await asyncio.sleep(0)
        if deckcode in self.rows:
            self.rows[deckcode].update(update_fields)
        else:
            shortid = create_fields["shortid"]
            if shortid in self._taken():
                raise ShortidCollisionError(shortid)
            self.seed(deckcode, **create_fields)
        return self.record(deckcode)

    async def update(self, deckcode, fields):
        await asyncio.sleep(0)
        if deckcode not in self.rows:
            raise NotFoundError(f"Deck not found: {deckcode}")
        self.updates.append((deckcode, dict(fields)))
        self.rows[deckcode].update(fields)
        return self.record(deckcode)

    async def existing_shortids(self, candidates):
        await asyncio.sleep(0)
        self.shortid_queries += 1
        return set(candidates) & self._taken()


class FakeBackend:
    """Render backend that answers after ``delay`` seconds with an image or an error."""

    def __init__(self, name: str, image: Optional[bytes] = None, exc: Optional[Exception] = None, delay: float = 0.0):
        self.name = name
        self.image = image
        self.exc = exc
        self.delay = delay
        self.calls = 0
        self.finished = 0

    async def render(self, deck: DeckRef) -> bytes:
        self.calls += 1
        await asyncio.sleep(self.delay)
        self.finished += 1
        if self.exc is not None:
            raise self.exc
        return self.image


@pytest.fixture
def store() -> InMemoryDeckStore:
    return InMemoryDeckStore()


@pytest.fixture
def full_deckcode() -> str:
    return encode_deckcode(FULL_DECK_BYTES)


@pytest.fixture
def small_deckcode() -> str:
    return encode_deckcode(SMALL_DECK_BYTES)


@pytest.fixture
def backend_factory():
    return FakeBackend


@pytest.fixture
def deckcode_from_bytes():
    return encode_deckcode

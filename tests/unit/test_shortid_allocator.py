# tests/unit/test_shortid_allocator.py
# Short id allocation: widening, exhaustion and insert-time races

import asyncio

import pytest

from deckshare.constants import SHORTID_ALPHABET
from deckshare.middleware.error_handler import ShortidCollisionError, ShortidSpaceExhaustedError
from deckshare.services.shortid_allocator import ShortidAllocator


class TakenUpToLength:
    """Store stub that reports every candidate up to a length as taken."""

    def __init__(self, taken_up_to: int):
        self.taken_up_to = taken_up_to
        self.queried_lengths: list[int] = []

    async def existing_shortids(self, candidates):
        candidates = set(candidates)
        self.queried_lengths.append(len(next(iter(candidates))))
        return {c for c in candidates if len(c) <= self.taken_up_to}


class TestAllocate:

    @pytest.mark.asyncio
    async def test_empty_store_gives_three_characters(self, store):
        allocator = ShortidAllocator(store)

        shortid = await allocator.allocate()

        assert len(shortid) == 3
        assert store.shortid_queries == 1

    @pytest.mark.asyncio
    async def test_uses_unambiguous_alphabet(self, store):
        allocator = ShortidAllocator(store, initial_length=40)

        shortid = await allocator.allocate()

        assert set(shortid) <= set(SHORTID_ALPHABET)
        assert not set(shortid) & set("0O1Il")

    @pytest.mark.asyncio
    async def test_one_query_per_batch(self, store):
        allocator = ShortidAllocator(store, batch_size=15)
        await allocator.allocate()
        assert store.shortid_queries == 1

    @pytest.mark.asyncio
    async def test_skips_taken_candidates(self, store):
        # 2-letter alphabet, length 1: "a" taken, only "b" is free
        store.reserved_shortids.add("a")
        allocator = ShortidAllocator(store, batch_size=15, initial_length=1, alphabet="ab")

        shortid = await allocator.allocate()

        assert shortid != "a"

    @pytest.mark.asyncio
    async def test_widens_when_whole_batch_is_taken(self):
        stub = TakenUpToLength(4)
        allocator = ShortidAllocator(stub, initial_length=3, max_length=12)

        shortid = await allocator.allocate()

        assert len(shortid) == 5
        assert stub.queried_lengths == [3, 4, 5]

    @pytest.mark.asyncio
    async def test_gives_up_past_max_length(self):
        stub = TakenUpToLength(100)
        allocator = ShortidAllocator(stub, initial_length=3, max_length=5)

        with pytest.raises(ShortidSpaceExhaustedError):
            await allocator.allocate()
        assert stub.queried_lengths == [3, 4, 5]

    def test_initial_length_must_fit_max(self, store):
        with pytest.raises(ValueError):
            ShortidAllocator(store, initial_length=6, max_length=5)


class TestInsertWithShortid:

    @pytest.mark.asyncio
    async def test_collision_retries_one_character_wider(self, store):
        allocator = ShortidAllocator(store)
        attempts: list[str] = []

        async def insert(shortid):
            attempts.append(shortid)
            if len(attempts) == 1:
                raise ShortidCollisionError(shortid)
            return shortid

        result = await allocator.insert_with_shortid(insert)

        assert len(attempts) == 2
        assert len(attempts[0]) == 3
        assert len(result) == 4

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, store):
        allocator = ShortidAllocator(store)

        async def insert(shortid):
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            await allocator.insert_with_shortid(insert)

    @pytest.mark.asyncio
    async def test_endless_collisions_end_at_max_length(self, store):
        allocator = ShortidAllocator(store, initial_length=3, max_length=6)
        attempts: list[str] = []

        async def insert(shortid):
            attempts.append(shortid)
            raise ShortidCollisionError(shortid)

        with pytest.raises(ShortidSpaceExhaustedError):
            await allocator.insert_with_shortid(insert)
        assert [len(a) for a in attempts] == [3, 4, 5, 6]

    @pytest.mark.asyncio
    async def test_concurrent_creations_get_unique_ids(self, store):
        # tiny id space so concurrent allocations really race
        allocator = ShortidAllocator(store, batch_size=2, initial_length=1, alphabet="abcd")

        async def create(i):
            async def insert(shortid):
                return await store.upsert(f"deck{i}", {"shortid": shortid}, {})
            return await allocator.insert_with_shortid(insert)

        records = await asyncio.gather(*(create(i) for i in range(40)))

        shortids = [r.shortid for r in records]
        assert len(set(shortids)) == 40
        assert len(store.rows) == 40

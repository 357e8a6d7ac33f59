# tests/unit/test_worker.py
# arq job functions with the redis context faked

from datetime import timedelta

import pytest

from deckshare.jobs import worker


class FakeRedis:
    def __init__(self):
        self.counters: dict[str, int] = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]


class StubDeckService:
    def __init__(self, image=None, exc=None):
        self.image = image
        self.exc = exc
        self.rendered = []

    async def render_deck_image(self, deckcode):
        self.rendered.append(deckcode)
        if self.exc:
            raise self.exc
        return self.image


@pytest.mark.asyncio
async def test_render_job_success(monkeypatch):
    service = StubDeckService(image=b"png")
    monkeypatch.setattr(worker, "get_deck_service", lambda: service)
    ctx = {"redis": FakeRedis()}

    result = await worker.render_deck_image(ctx, "CODE1")

    assert result == {"deckcode": "CODE1", "rendered": True, "bytes": 3}
    assert ctx["redis"].counters == {"jobs:render:started": 1, "jobs:render:finished": 1}


@pytest.mark.asyncio
async def test_render_job_without_image(monkeypatch):
    monkeypatch.setattr(worker, "get_deck_service", lambda: StubDeckService(image=None))
    ctx = {"redis": FakeRedis()}

    result = await worker.render_deck_image(ctx, "CODE1")

    assert result["rendered"] is False
    assert ctx["redis"].counters["jobs:render:failed"] == 1


@pytest.mark.asyncio
async def test_render_job_error_propagates(monkeypatch):
    monkeypatch.setattr(worker, "get_deck_service", lambda: StubDeckService(exc=ConnectionError("db")))
    ctx = {"redis": FakeRedis()}

    with pytest.raises(ConnectionError):
        await worker.render_deck_image(ctx, "CODE1")
    assert ctx["redis"].counters["jobs:render:failed"] == 1


@pytest.mark.asyncio
async def test_release_stale_renders(monkeypatch):
    seen = {}

    class StubRepository:
        async def release_stale_renders(self, older_than):
            seen["older_than"] = older_than
            return ["CODE1", "CODE2"]

    monkeypatch.setattr(worker, "DeckRepository", StubRepository)

    result = await worker.release_stale_renders({})

    assert result == {"released": 2}
    assert seen["older_than"] == timedelta(minutes=worker.settings.STALE_RENDER_MINUTES)


def test_worker_registers_jobs():
    names = {f.__name__ for f in worker.WorkerSettings.functions}

    assert names == {"render_deck_image", "release_stale_renders"}
    assert len(worker.WorkerSettings.cron_jobs) == 1

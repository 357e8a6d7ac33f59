# tests/unit/test_render_poller.py

import pytest

from deckshare.services.render_poller import RenderPoller

VERSION = "2.1"


class CountingSleep:
    """Records requested delays instead of sleeping; can run a hook per sleep."""

    def __init__(self, on_sleep=None):
        self.delays: list[float] = []
        self._on_sleep = on_sleep

    async def __call__(self, seconds: float):
        self.delays.append(seconds)
        if self._on_sleep:
            self._on_sleep(len(self.delays))


def make_poller(store, sleep, **kwargs):
    return RenderPoller(store, image_version=VERSION, sleep=sleep, **kwargs)


class TestWaitForImage:

    @pytest.mark.asyncio
    async def test_fresh_image_returned_on_first_read(self, store):
        store.seed("code1", "abc", image=b"png", image_version=VERSION)
        sleep = CountingSleep()

        image = await make_poller(store, sleep).wait_for_image("code1")

        assert image == b"png"
        assert sleep.delays == []
        assert store.reads == 1

    @pytest.mark.asyncio
    async def test_fresh_image_wins_over_rendering_flag(self, store):
        store.seed("code1", "abc", image=b"png", image_version=VERSION, image_rendering=True)

        assert await make_poller(store, CountingSleep()).wait_for_image("code1") == b"png"

    @pytest.mark.asyncio
    async def test_waits_while_rendering(self, store):
        store.seed("code1", "abc", image_rendering=True)

        def finish_render(n):
            if n == 2:
                store.rows["code1"].update(image=b"png", image_version=VERSION, image_rendering=False)

        sleep = CountingSleep(on_sleep=finish_render)
        image = await make_poller(store, sleep, poll_interval_ms=250).wait_for_image("code1")

        assert image == b"png"
        assert sleep.delays == [0.25, 0.25]
        assert store.reads == 3

    @pytest.mark.asyncio
    async def test_no_image_and_not_rendering(self, store):
        store.seed("code1", "abc")
        sleep = CountingSleep()

        assert await make_poller(store, sleep).wait_for_image("code1") is None
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unknown_deck(self, store):
        sleep = CountingSleep()

        assert await make_poller(store, sleep).wait_for_image("missing") is None
        assert sleep.delays == []
        assert "missing" not in store.rows

    @pytest.mark.asyncio
    async def test_stale_image_not_rendering(self, store):
        store.seed("code1", "abc", image=b"old", image_version="1.0")

        assert await make_poller(store, CountingSleep()).wait_for_image("code1") is None

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, store):
        store.seed("code1", "abc", image=b"old", image_version="1.0", image_rendering=True)
        sleep = CountingSleep()

        image = await make_poller(store, sleep, max_attempts=4, poll_interval_ms=500).wait_for_image("code1")

        assert image is None
        assert sleep.delays == [0.5] * 4
        assert store.reads == 4

    @pytest.mark.asyncio
    async def test_call_overrides_defaults(self, store):
        store.seed("code1", "abc", image_rendering=True)
        sleep = CountingSleep()
        poller = make_poller(store, sleep, max_attempts=10, poll_interval_ms=500)

        assert await poller.wait_for_image("code1", max_attempts=2, poll_interval_ms=100) is None
        assert sleep.delays == [0.1, 0.1]

    @pytest.mark.asyncio
    async def test_never_writes(self, store):
        store.seed("code1", "abc", image_rendering=True)

        await make_poller(store, CountingSleep(), max_attempts=3).wait_for_image("code1")

        assert store.updates == []
        assert store.record("code1").image_rendering is True

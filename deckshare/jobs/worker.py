from datetime import timedelta

from arq import cron
from arq.connections import RedisSettings
from opentelemetry import trace

from deckshare import config
from deckshare.config import settings
from deckshare.observability.logger import configure_logging
from deckshare.observability.metrics import STALE_RENDERS_RELEASED
from deckshare.repositories.deck_repository import DeckRepository
from deckshare.services.deck_service import close_deck_service, get_deck_service
from deckshare.utils.logger import log_info
from deckshare.utils.telemetry import init_otel


async def render_deck_image(ctx, deckcode: str) -> dict:
    """Background render; the stored image is what callers poll for."""
    r = ctx["redis"]
    tracer = trace.get_tracer("worker")
    await r.incr("jobs:render:started")
    try:
        with tracer.start_as_current_span("job.render_deck_image"):
            image = await get_deck_service().render_deck_image(deckcode)
    except Exception:
        await r.incr("jobs:render:failed")
        raise
    if image is None:
        await r.incr("jobs:render:failed")
        return {"deckcode": deckcode, "rendered": False}
    await r.incr("jobs:render:finished")
    return {"deckcode": deckcode, "rendered": True, "bytes": len(image)}


async def release_stale_renders(ctx) -> dict:
    """Clear render flags left behind by processes that died mid-render."""
    released = await DeckRepository().release_stale_renders(
        timedelta(minutes=settings.STALE_RENDER_MINUTES)
    )
    if released:
        STALE_RENDERS_RELEASED.inc(len(released))
        log_info(f"Released {len(released)} stale render flags: {', '.join(released[:20])}")
    return {"released": len(released)}


class WorkerSettings:
    functions = [render_deck_image, release_stale_renders]
    keep_result = 3600  # job results readable through /api/jobs for an hour
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    cron_jobs = [
        cron(release_stale_renders, minute=set(range(0, 60, 5))),
    ]

    @staticmethod
    async def startup(ctx):
        configure_logging(config)
        init_otel(service_name="deckshare-worker")

    @staticmethod
    async def shutdown(ctx):
        await close_deck_service()

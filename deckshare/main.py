from contextlib import asynccontextmanager

from fastapi import FastAPI

from deckshare import config
from deckshare.db.base import async_engine
from deckshare.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from deckshare.observability.logger import configure_logging
from deckshare.observability.metrics import router as prometheus_router
from deckshare.routers.decks import router as decks_router
from deckshare.routers.health import router as health_router
from deckshare.routers.jobs import close_arq, router as jobs_router
from deckshare.routers.views import router as views_router
from deckshare.services.deck_service import close_deck_service
from deckshare.utils.cache import close_pool
from deckshare.utils.logger import log_info
from deckshare.utils.telemetry import init_otel


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_info(f"deckshare starting, image version {config.settings.IMAGE_VERSION}")
    yield
    log_info("Starting graceful shutdown...")
    await close_arq()
    await close_deck_service()
    await close_pool()
    await async_engine.dispose()
    log_info("Shutdown complete.")


configure_logging(config)

app = FastAPI(
    title="Deckshare API",
    description="Deck registry with short links and rendered deck images",
    version="1.0.0",
    lifespan=lifespan,
)

# Error handler should be outermost to catch all errors
app.add_middleware(ErrorHandlerMiddleware, debug=config.DEBUG)

setup_exception_handlers(app)

app.include_router(health_router)  # Health checks at root level
app.include_router(prometheus_router)
app.include_router(decks_router, prefix="/api")
app.include_router(views_router, prefix="/api")
app.include_router(jobs_router, prefix="/api")

init_otel(app=app, engine=async_engine)


def get_app() -> FastAPI:
    """Application factory for `uvicorn --factory deckshare.main:get_app`."""
    return app


if __name__ == "__main__":
    import uvicorn

    log_info(f"Server starting at http://{config.HOST}:{config.PORT}")
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())

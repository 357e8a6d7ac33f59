# tests/integration/conftest.py
# Pytest fixtures to start PostgreSQL & Redis via TestContainers.
# - Session-scoped containers; tests are skipped when Docker is unavailable.
# - Each test gets its own engine and Redis client bound to its event loop.

from typing import Iterator

import docker  # type: ignore
import pytest  # type: ignore[import-not-found]
import pytest_asyncio
import redis.asyncio as aioredis
from testcontainers.postgres import PostgresContainer  # type: ignore
from testcontainers.redis import RedisContainer  # type: ignore

import deckshare.db.base as db_base
import deckshare.utils.cache as cache_module
from deckshare.db.base import _to_asyncpg_url, build_engine, build_session_factory, metadata
from deckshare.models.deck_table import decks
from deckshare.models.deckviews_table import deck_info, deckviews


def _require_docker() -> None:
    try:
        docker.from_env().ping()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")


@pytest.fixture(scope="session")
def postgres_url() -> Iterator[str]:
    _require_docker()
    with PostgresContainer("postgres:16-alpine", driver=None) as pg:
        yield _to_asyncpg_url(pg.get_connection_url())


@pytest.fixture(scope="session")
def redis_url() -> Iterator[str]:
    _require_docker()
    with RedisContainer("redis:7-alpine") as rc:
        host = rc.get_container_host_ip()
        port = rc.get_exposed_port(rc.port)
        yield f"redis://{host}:{port}/0"


@pytest_asyncio.fixture
async def db(postgres_url: str, monkeypatch):
    """Point the shared session factory at the container and start from empty tables."""
    engine = build_engine(postgres_url)
    monkeypatch.setattr(db_base, "async_engine", engine)
    monkeypatch.setattr(db_base, "AsyncSessionFactory", build_session_factory(engine))
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        for table in (decks, deckviews, deck_info):
            await conn.execute(table.delete())
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def redis_client(redis_url: str, monkeypatch):
    client = aioredis.from_url(redis_url, decode_responses=True)
    await client.flushdb()
    monkeypatch.setattr(cache_module, "_client", client)
    yield client
    await client.aclose()

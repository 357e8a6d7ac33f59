# deckshare/db/base.py
# Async engine and session factory shared by the repositories

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from deckshare import config

_SCHEME = re.compile(r"^[a-zA-Z0-9+.-]+://")

# Tables of every model module register here; Alembic reads it too.
metadata: MetaData = MetaData()


def _to_asyncpg_url(url: str) -> str:
    """Force the asyncpg dialect onto a PostgreSQL URL.

    ``postgres://``, ``postgresql://`` and driver-qualified forms such as
    testcontainers' ``postgresql+psycopg2://`` all map to
    ``postgresql+asyncpg://``.
    """
    return _SCHEME.sub("postgresql+asyncpg://", url, count=1)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    # pre-ping drops connections the server closed while idle
    return create_async_engine(_to_asyncpg_url(url), echo=echo, pool_pre_ping=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


async_engine: AsyncEngine = build_engine(config.DATABASE_URL, echo=config.DEBUG)
AsyncSessionFactory = build_session_factory(async_engine)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionFactory() as session:
        yield session

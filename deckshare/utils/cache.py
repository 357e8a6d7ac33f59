# deckshare/utils/cache.py
# Redis-backed JSON cache for read-heavy listings

import hashlib
import json
from typing import Any, Optional

import redis.asyncio as aioredis

from deckshare.config import settings

DEFAULT_TTL_SECONDS = 60

_client: Optional[aioredis.Redis] = None


def get_client() -> aioredis.Redis:
    """Shared client; the connection pool is created on first use."""
    global _client
    if _client is None:
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def close_pool() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def ping() -> bool:
    return bool(await get_client().ping())


class Cache:
    """JSON documents under hashed keys, all with one TTL."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl = ttl_seconds

    @staticmethod
    def build_key(prefix: str, payload: dict) -> str:
        # Equal payloads give equal keys regardless of dict order
        raw = json.dumps(payload, sort_keys=True, default=str)
        return f"{prefix}:{hashlib.sha256(raw.encode()).hexdigest()}"

    async def get_json(self, key: str) -> Optional[Any]:
        data = await get_client().get(key)
        return json.loads(data) if data else None

    async def set_json(self, key: str, value: Any) -> None:
        await get_client().setex(key, self.ttl, json.dumps(value, default=str))

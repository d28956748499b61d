"""Decision locks — serialize approve/reject on the same pending request.

The data service has no compare-and-swap, so two reviewers deciding the
same request at once could both see `pending` and both replay. Holding a
per-request lock around "re-read status, replay, mark resolved" closes
that window.

Backends:
  InProcessDecisionLock  asyncio.Lock per key (single worker)
  RedisDecisionLock      SET NX PX + token-checked release (multi-worker)

`acquire(key)` is an async context manager yielding True when the lock is
held and False when another decision on the same key is in flight.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis

from plantops.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )
    return _redis_client


async def close_redis():
    """Close the Redis client (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


class InProcessDecisionLock:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[bool]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        if lock.locked():
            yield False
            return
        try:
            async with lock:
                yield True
        finally:
            if not lock.locked() and self._locks.get(key) is lock:
                del self._locks[key]


# Delete the key only if it still holds our token.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisDecisionLock:
    def __init__(self, client: redis.Redis, ttl_ms: int = 30000, prefix: str = "decision"):
        self.client = client
        self.ttl_ms = ttl_ms
        self.prefix = prefix

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[bool]:
        name = f"{self.prefix}:{key}"
        token = secrets.token_hex(16)
        acquired = await self.client.set(name, token, nx=True, px=self.ttl_ms)
        if not acquired:
            yield False
            return
        try:
            yield True
        finally:
            try:
                await self.client.eval(_RELEASE_SCRIPT, 1, name, token)
            except redis.RedisError as e:
                # Key expires on its own after ttl_ms.
                logger.warning(f"Failed to release decision lock {name}: {e}")


async def build_decision_lock():
    """Lock backend selected by settings.decision_lock_backend."""
    if settings.decision_lock_backend == "redis":
        return RedisDecisionLock(await get_redis(), ttl_ms=settings.decision_lock_ttl_ms)
    return InProcessDecisionLock()

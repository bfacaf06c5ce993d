"""Redis adapter: async Redis via ``redis.asyncio``."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from redis.asyncio import Redis

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis cache, JSON-serialized, semaphore-bounded.

    Backend errors propagate; wrap in ``SafeCache`` for degrade-to-miss.

    Args:
        url: Redis URL (e.g. ``redis://localhost:6379/0``).
        ttl_seconds: Default TTL.
        max_concurrent: Max parallel Redis operations.
        namespace: Prefix applied to every key.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        max_concurrent: int = 50,
        namespace: str = "resolvarr",
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self.namespace = namespace
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def __aenter__(self) -> RedisAdapter:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
            await self._client.ping()
            log.info("redis_connected", url=self.url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _require(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:'")
        return self._client

    async def get(self, key: str) -> Any:
        client = self._require()
        async with self._semaphore:
            raw = await client.get(self._key(key))
        log.debug("cache_get", key=key, hit=raw is not None)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        client = self._require()
        expire = ttl if ttl is not None else self.default_ttl
        packed = json.dumps(value)
        async with self._semaphore:
            await client.setex(self._key(key), expire, packed)
        log.debug("cache_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            return await self._client.delete(self._key(key)) > 0

    async def exists(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            return await self._client.exists(self._key(key)) > 0

    async def clear(self) -> None:
        """Delete every key under this adapter's namespace."""
        if self._client is None:
            return
        async with self._semaphore:
            keys = [k async for k in self._client.scan_iter(match=self._key("*"))]
            if keys:
                await self._client.delete(*keys)
        log.warning("redis_namespace_cleared", namespace=self.namespace, keys=len(keys))

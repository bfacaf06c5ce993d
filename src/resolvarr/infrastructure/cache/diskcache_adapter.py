"""Diskcache adapter: SQLite-backed cache without a daemon process."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
from diskcache import Cache as DiskCache

log = structlog.get_logger(__name__)


class DiskcacheAdapter:
    """Async wrapper for ``diskcache.Cache`` (sync-only library).

    Values are stored as JSON text so the same entries are readable from
    either backend. Disk I/O runs in ``asyncio.to_thread``; a semaphore
    bounds parallel SQLite access.

    Args:
        directory: Cache directory.
        ttl_seconds: Default TTL for ``set()`` without an explicit one.
        max_concurrent: Max parallel disk operations.
        namespace: Prefix applied to every key.
    """

    def __init__(
        self,
        directory: str | Path = "./cache",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
        namespace: str = "resolvarr",
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self.namespace = namespace
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", path=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    def _require(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Cache not initialized. Use 'async with cache:' or await cache.__aenter__()"
            )
        return self._cache

    async def get(self, key: str) -> Any:
        cache = self._require()
        async with self._semaphore:
            raw = await asyncio.to_thread(cache.get, self._key(key), default=None)
        log.debug("cache_get", key=key, hit=raw is not None)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        cache = self._require()
        expire = ttl if ttl is not None else self.default_ttl
        packed = json.dumps(value)
        async with self._semaphore:
            await asyncio.to_thread(cache.set, self._key(key), packed, expire=expire)
        log.debug("cache_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        async with self._semaphore:
            return bool(await asyncio.to_thread(self._cache.delete, self._key(key)))

    async def exists(self, key: str) -> bool:
        if self._cache is None:
            return False
        cache = self._cache
        async with self._semaphore:
            return await asyncio.to_thread(lambda: self._key(key) in cache)

    async def clear(self) -> None:
        if self._cache is None:
            return
        async with self._semaphore:
            await asyncio.to_thread(self._cache.clear)
        log.warning("cache_cleared", directory=str(self.directory))

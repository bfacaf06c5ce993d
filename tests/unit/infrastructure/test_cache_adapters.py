"""Tests for the diskcache adapter and the cache factory."""

from __future__ import annotations

from pathlib import Path

import pytest
from diskcache import Cache as DiskCache

from resolvarr.infrastructure.cache.cache_factory import create_cache
from resolvarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from resolvarr.infrastructure.cache.redis_adapter import RedisAdapter
from resolvarr.infrastructure.cache.safe_cache import SafeCache


class TestDiskcacheAdapter:
    @pytest.mark.asyncio
    async def test_json_values_under_namespace(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path, namespace="ns") as cache:
            await cache.set("uhdmovies:1", [{"url": "https://a.example"}], ttl=60)
            assert await cache.get("uhdmovies:1") == [{"url": "https://a.example"}]
            assert await cache.exists("uhdmovies:1") is True
            assert await cache.get("missing") is None

        raw = DiskCache(str(tmp_path))
        try:
            assert raw.get("ns:uhdmovies:1") == '[{"url": "https://a.example"}]'
        finally:
            raw.close()

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path) as cache:
            await cache.set("a", 1)
            await cache.set("b", 2)
            assert await cache.delete("a") is True
            assert await cache.delete("a") is False
            await cache.clear()
            assert await cache.exists("b") is False

    @pytest.mark.asyncio
    async def test_unopened_cache(self, tmp_path: Path) -> None:
        cache = DiskcacheAdapter(directory=tmp_path)
        with pytest.raises(RuntimeError):
            await cache.get("a")
        assert await cache.delete("a") is False
        assert await cache.exists("a") is False


class TestCreateCache:
    def test_diskcache_wrapped(self, tmp_path: Path) -> None:
        cache = create_cache("diskcache", directory=str(tmp_path))
        assert isinstance(cache, SafeCache)
        assert isinstance(cache._inner, DiskcacheAdapter)

    def test_redis_wrapped(self) -> None:
        cache = create_cache("redis", redis_url="redis://cache:6379/1", namespace="x")
        assert isinstance(cache, SafeCache)
        assert isinstance(cache._inner, RedisAdapter)
        assert cache._inner.url == "redis://cache:6379/1"

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown cache backend"):
            create_cache("memcached")  # type: ignore[arg-type]

"""Cache factory: builds the configured backend behind ``SafeCache``."""

from __future__ import annotations

from typing import Literal

import structlog

from resolvarr.domain.ports.cache import CachePort

from .diskcache_adapter import DiskcacheAdapter
from .redis_adapter import RedisAdapter
from .safe_cache import SafeCache

log = structlog.get_logger(__name__)

CacheBackend = Literal["diskcache", "redis"]


def create_cache(
    backend: CacheBackend = "diskcache",
    *,
    directory: str = "./cache",
    redis_url: str = "redis://localhost:6379/0",
    ttl_seconds: int = 3600,
    max_concurrent: int = 10,
    namespace: str = "resolvarr",
) -> CachePort:
    """Create a cache adapter for *backend*, wrapped in ``SafeCache``.

    Raises:
        ValueError: If *backend* is unknown.
    """
    inner: CachePort
    if backend == "diskcache":
        inner = DiskcacheAdapter(
            directory=directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=max_concurrent,
            namespace=namespace,
        )
    elif backend == "redis":
        inner = RedisAdapter(
            url=redis_url,
            ttl_seconds=ttl_seconds,
            max_concurrent=max(max_concurrent, 50),
            namespace=namespace,
        )
    else:
        raise ValueError(f"Unknown cache backend: {backend!r}. Must be 'diskcache' or 'redis'.")

    log.info("cache_factory_create", backend=backend, ttl=ttl_seconds, namespace=namespace)
    return SafeCache(inner)

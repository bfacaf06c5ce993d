"""Cache backends behind ``CachePort``."""

from .cache_factory import CacheBackend, create_cache
from .diskcache_adapter import DiskcacheAdapter
from .redis_adapter import RedisAdapter
from .safe_cache import SafeCache

__all__ = [
    "CacheBackend",
    "DiskcacheAdapter",
    "RedisAdapter",
    "SafeCache",
    "create_cache",
]

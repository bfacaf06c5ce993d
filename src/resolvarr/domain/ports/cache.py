"""Cache port used for TMDB lookups and scraped intermediate links."""

from __future__ import annotations

from typing import Any, Protocol


class CachePort(Protocol):
    """Async key/value store with per-entry TTL.

    Values must be JSON-serializable (dicts, lists, scalars); both
    backends store JSON text so entries survive a backend switch. Final
    media URLs are short-lived and never go through this port.

    Used as an async context manager for the lifetime of the app:
        async with cache:
            await cache.set("uhdmovies:27205:movie:None:None", links, ttl=21600)
    """

    async def get(self, key: str) -> Any:
        """Stored value, or None when missing or expired."""
        ...

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Store *value*; ``ttl=None`` uses the backend default."""
        ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def clear(self) -> None: ...

    async def aclose(self) -> None: ...

    async def __aenter__(self) -> CachePort: ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...

"""Cache wrapper that turns backend failures into misses."""

from __future__ import annotations

from typing import Any

import structlog

from resolvarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)


class SafeCache:
    """Delegates to *inner*; any backend error degrades to a miss / no-op.

    Unavailability never fails a caller: a cache that cannot open is
    remembered as down and every later call short-circuits.
    """

    def __init__(self, inner: CachePort) -> None:
        self._inner = inner
        self._available = True

    @property
    def available(self) -> bool:
        return self._available

    async def __aenter__(self) -> SafeCache:
        try:
            await self._inner.__aenter__()
        except Exception:  # noqa: BLE001
            self._available = False
            log.warning("cache_unavailable", backend=type(self._inner).__name__, exc_info=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        try:
            await self._inner.aclose()
        except Exception:  # noqa: BLE001
            log.warning("cache_close_failed", exc_info=True)

    async def get(self, key: str) -> Any:
        if not self._available:
            return None
        try:
            return await self._inner.get(key)
        except Exception as exc:  # noqa: BLE001
            log.warning("cache_get_failed", key=key, error=f"{type(exc).__name__}: {exc}")
            return None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        if not self._available:
            return
        try:
            await self._inner.set(key, value, ttl=ttl)
        except Exception as exc:  # noqa: BLE001
            log.warning("cache_set_failed", key=key, error=f"{type(exc).__name__}: {exc}")

    async def delete(self, key: str) -> bool:
        if not self._available:
            return False
        try:
            return await self._inner.delete(key)
        except Exception:  # noqa: BLE001
            log.warning("cache_delete_failed", key=key, exc_info=True)
            return False

    async def exists(self, key: str) -> bool:
        if not self._available:
            return False
        try:
            return await self._inner.exists(key)
        except Exception:  # noqa: BLE001
            log.warning("cache_exists_failed", key=key, exc_info=True)
            return False

    async def clear(self) -> None:
        if not self._available:
            return
        try:
            await self._inner.clear()
        except Exception:  # noqa: BLE001
            log.warning("cache_clear_failed", exc_info=True)

"""Per-host token-bucket rate limiter for outgoing HTTP requests."""

from __future__ import annotations

import asyncio
import time
from urllib.parse import urlsplit


class TokenBucket:
    """Token bucket refilled at *rate* tokens per second, capped at *burst*."""

    def __init__(self, rate: float, burst: int = 10) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        if self._rate <= 0:
            return

        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens -= 1.0

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            self._burst, self._tokens + (now - self._last_refill) * self._rate
        )
        self._last_refill = now


class DomainRateLimiter:
    """One bucket per host name.

    Args:
        default_rps: Requests per second per host. 0 = unlimited.
        burst: Maximum burst size per host.
    """

    def __init__(self, default_rps: float = 5.0, burst: int = 10) -> None:
        self._default_rps = default_rps
        self._burst = burst
        self._buckets: dict[str, TokenBucket] = {}

    async def acquire(self, url: str) -> None:
        if self._default_rps <= 0:
            return
        host = urlsplit(url).hostname
        if not host:
            return
        bucket = self._buckets.get(host)
        if bucket is None:
            bucket = self._buckets[host] = TokenBucket(self._default_rps, self._burst)
        await bucket.acquire()

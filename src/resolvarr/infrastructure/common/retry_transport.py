"""httpx transport with per-host rate limiting and bounded retries."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

from resolvarr.infrastructure.common.rate_limiter import DomainRateLimiter

log = structlog.get_logger(__name__)

_DEFAULT_RETRYABLE = frozenset({429, 503})


def _parse_retry_after(headers: httpx.Headers) -> float | None:
    """``Retry-After`` in seconds; HTTP-date form is ignored."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport with rate limiting and retry.

    Retries retryable status codes (429/503) with exponential backoff plus
    jitter, honouring ``Retry-After``. With *retry_network_errors* set,
    ``httpx.TransportError`` (timeouts, resets) is retried on the same
    schedule without jitter, giving the 1s/2s/4s cadence used for flaky
    anime APIs.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: DomainRateLimiter | None = None,
        *,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        max_backoff: float = 30.0,
        retryable_status_codes: frozenset[int] = _DEFAULT_RETRYABLE,
        retry_network_errors: bool = False,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._retryable = retryable_status_codes
        self._retry_network_errors = retry_network_errors

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire(str(request.url))

            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.TransportError as exc:
                if not self._retry_network_errors or attempt >= self._max_retries:
                    raise
                delay = min(self._backoff_base * (2**attempt), self._max_backoff)
                log.info(
                    "http_retry_network",
                    url=str(request.url),
                    error=type(exc).__name__,
                    attempt=attempt + 1,
                    delay=delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status_code not in self._retryable or attempt >= self._max_retries:
                return response

            await response.aread()
            await response.aclose()

            delay = self._compute_delay(response, attempt)
            log.info(
                "http_retry",
                url=str(request.url),
                status=response.status_code,
                attempt=attempt + 1,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)
            attempt += 1

    def _compute_delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = _parse_retry_after(response.headers)
        if retry_after is not None:
            return min(retry_after, self._max_backoff)

        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return min(delay + jitter, self._max_backoff)

    async def aclose(self) -> None:
        await self._wrapped.aclose()

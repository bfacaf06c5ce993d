"""Remote domain registries for sites whose base URL keeps rotating.

Each registry is a static JSON document mapping provider keys to their
current base URL. Every document is fetched at most once per process; on
any failure the per-key fallback wins and the failure is remembered, so
callers never wait on a broken registry twice.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import httpx
import structlog

log = structlog.get_logger(__name__)

SAURABH_REGISTRY_URL = (
    "https://raw.githubusercontent.com/SaurabhKaperwan/Utils/refs/heads/main/urls.json"
)
PHISHER_REGISTRY_URL = (
    "https://raw.githubusercontent.com/phisher98/TVVVV/refs/heads/main/domains.json"
)

DEFAULT_SOURCES: dict[str, str] = {
    "gdflix": SAURABH_REGISTRY_URL,
    "moviesdrive": SAURABH_REGISTRY_URL,
    "hdhub4u": PHISHER_REGISTRY_URL,
    "moviesmod": PHISHER_REGISTRY_URL,
    "dramadrip": PHISHER_REGISTRY_URL,
}

DEFAULT_FALLBACKS: dict[str, str] = {
    "gdflix": "https://new10.gdflix.dad",
    "moviesdrive": "https://moviesdrive.design",
    "hdhub4u": "https://hdhub4u.frl",
    "moviesmod": "https://moviesmod.build",
    "dramadrip": "https://dramadrip.com",
}


class DomainRegistry:
    """Memoized ``key -> base URL`` lookup over one or more JSON documents."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        sources: Mapping[str, str] | None = None,
        fallbacks: Mapping[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._sources = {
            k.lower(): v for k, v in (DEFAULT_SOURCES if sources is None else sources).items()
        }
        self._fallbacks = {
            k.lower(): v
            for k, v in (DEFAULT_FALLBACKS if fallbacks is None else fallbacks).items()
        }
        self._timeout = timeout
        self._documents: dict[str, dict[str, str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def base_url(self, key: str) -> str:
        """Current base URL for *key*, without trailing slash.

        Keys are case-insensitive. Falls back to the configured default
        when the registry is unreachable or has no usable entry.
        """
        key = key.lower()
        value = ""
        source = self._sources.get(key)
        if source:
            value = (await self._load(source)).get(key, "")
        return (value or self._fallbacks.get(key, "")).rstrip("/")

    async def _load(self, source: str) -> dict[str, str]:
        if source in self._documents:
            return self._documents[source]
        lock = self._locks.setdefault(source, asyncio.Lock())
        async with lock:
            if source not in self._documents:
                self._documents[source] = await self._fetch(source)
        return self._documents[source]

    async def _fetch(self, source: str) -> dict[str, str]:
        try:
            resp = await self._http.get(source, timeout=self._timeout, follow_redirects=True)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.warning(
                "domain_registry_unavailable",
                url=source,
                error=f"{type(exc).__name__}: {exc}",
            )
            return {}

        if not isinstance(data, dict):
            log.warning("domain_registry_malformed", url=source)
            return {}
        domains = {
            str(k).lower(): v
            for k, v in data.items()
            if isinstance(v, str) and v.startswith("http")
        }
        log.info("domain_registry_loaded", url=source, entries=len(domains))
        return domains

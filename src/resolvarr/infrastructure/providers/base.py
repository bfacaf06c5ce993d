"""Shared base class for provider orchestrators.

One provider wraps one indexing site. ``resolve_streams`` runs the same
pipeline for every site:

1. metadata lookup (TMDB) for title and year
2. cached intermediate links, keyed by site + title + episode
3. on a miss: site search, best-match disambiguation, page scrape
4. every intermediate link through the link resolver registry, in parallel
5. final filter: no zip files, no redirectors, unique URLs, best first

Subclasses set ``name`` and ``site`` and implement ``_search`` and
``_intermediates``. API-backed sites that never see a redirect chain
override ``_streams`` instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import asdict, dataclass, replace
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    MediaMetadata,
    MediaRef,
    ProviderSite,
    RequestConfig,
    ResolutionError,
    ResolutionHints,
    ResolutionRequest,
    StreamDescriptor,
)
from resolvarr.domain.ports.cache import CachePort
from resolvarr.domain.ports.metadata import MetadataPort
from resolvarr.infrastructure.common.html_selectors import parse_html
from resolvarr.infrastructure.common.parsers import parse_size_to_mb
from resolvarr.infrastructure.common.quality import quality_rank
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.link_resolvers import LinkResolverRegistry, is_redirector_url
from resolvarr.infrastructure.link_resolvers.modrefer import LinkEntry
from resolvarr.infrastructure.matching.title_matcher import best_match

DEFAULT_INTERMEDIATE_TTL = 6 * 3600
DEFAULT_MATCH_THRESHOLD = 30.0


@dataclass(frozen=True)
class SearchHit:
    """One search result row of a site."""

    title: str
    url: str


@dataclass(frozen=True)
class IntermediateLink:
    """A scraped link that still needs a redirect chain to become media.

    This is what gets cached; final URLs never are.
    """

    url: str
    quality: str | None = None
    file_name: str | None = None
    size: str | None = None
    label: str | None = None
    referer: str | None = None

    def to_request(self) -> ResolutionRequest:
        return ResolutionRequest(
            url=self.url,
            referer=self.referer,
            hints=ResolutionHints(quality=self.quality, file_name=self.file_name, size=self.size),
        )


def _is_zip(descriptor: StreamDescriptor) -> bool:
    path = urlsplit(descriptor.url).path.lower()
    name = (descriptor.file_name or "").lower()
    return path.endswith(".zip") or name.endswith(".zip")


def filter_streams(descriptors: Iterable[StreamDescriptor | None]) -> list[StreamDescriptor]:
    """Drop empties, zip archives and redirectors; dedupe by URL; sort.

    Order is quality rank descending, then size descending; equal keys keep
    their input order.
    """
    seen: set[str] = set()
    kept: list[StreamDescriptor] = []
    for descriptor in descriptors:
        if descriptor is None or not descriptor.url:
            continue
        if descriptor.url in seen or _is_zip(descriptor) or is_redirector_url(descriptor.url):
            continue
        seen.add(descriptor.url)
        kept.append(descriptor)
    kept.sort(key=lambda d: (quality_rank(d.quality), parse_size_to_mb(d.size)), reverse=True)
    return kept


class ProviderBase:
    """Base for site orchestrators; satisfies ``ProviderPort``."""

    name: str = ""
    site: ProviderSite = ProviderSite(key="", base_url="")
    movies_only: bool = False
    _match_threshold: float = DEFAULT_MATCH_THRESHOLD
    _intermediate_ttl: int = DEFAULT_INTERMEDIATE_TTL

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        metadata: MetadataPort,
        cache: CachePort,
        links: LinkResolverRegistry,
        domains: DomainRegistry | None = None,
    ) -> None:
        self._http = http_client
        self._metadata = metadata
        self._cache = cache
        self._links = links
        self._domains = domains
        self._log = structlog.get_logger(f"resolvarr.providers.{self.site.key or __name__}")

    # ------------------------------------------------------------------
    # ProviderPort
    # ------------------------------------------------------------------

    async def resolve_streams(
        self, media: MediaRef, config: RequestConfig
    ) -> list[StreamDescriptor]:
        """All playable streams this site has for *media*. Never raises."""
        if media.is_tv and self.movies_only:
            return []
        if media.is_tv and (media.season is None or media.episode is None):
            self._log.info("provider_episode_missing", provider=self.name, tmdb_id=media.tmdb_id)
            return []

        try:
            meta = await self._metadata.get_metadata(media.tmdb_id, media.media_type)
        except Exception:  # noqa: BLE001
            self._log.warning("provider_metadata_failed", provider=self.name, exc_info=True)
            return []
        if meta is None:
            self._log.info("provider_metadata_missing", provider=self.name, tmdb_id=media.tmdb_id)
            return []
        if not self._accepts(meta):
            self._log.debug("provider_skipped", provider=self.name, title=meta.title)
            return []

        try:
            found = await self._streams(media, meta, config)
        except Exception:  # noqa: BLE001
            self._log.warning(
                "provider_failed", provider=self.name, tmdb_id=media.tmdb_id, exc_info=True
            )
            return []

        streams = filter_streams(found)
        self._log.info(
            "provider_streams",
            provider=self.name,
            tmdb_id=media.tmdb_id,
            found=len(found),
            kept=len(streams),
        )
        return streams

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _accepts(self, meta: MediaMetadata) -> bool:
        """Content gate; e.g. region-specific sites reject other titles."""
        return True

    async def _streams(
        self, media: MediaRef, meta: MediaMetadata, config: RequestConfig
    ) -> list[StreamDescriptor]:
        links = await self._cached_intermediates(media, meta)
        if not links:
            return []
        batches = await asyncio.gather(*(self._resolve_isolated(link, media) for link in links))
        return [d for batch in batches for d in batch]

    async def _resolve_isolated(
        self, link: IntermediateLink, media: MediaRef
    ) -> list[StreamDescriptor]:
        """``_resolve_link`` for one branch of the fan-out; a crash yields ``[]``."""
        try:
            return await self._resolve_link(link, media)
        except Exception:  # noqa: BLE001
            self._log.warning(
                "provider_link_failed", provider=self.name, url=link.url, exc_info=True
            )
            return []

    async def _cached_intermediates(
        self, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        key = media.cache_key(self.site.key or self.name)
        cached = await self._cache.get(key)
        if isinstance(cached, list) and cached:
            self._log.debug("provider_cache_hit", provider=self.name, links=len(cached))
            return [IntermediateLink(**entry) for entry in cached if isinstance(entry, dict)]

        page = await self._find_page(media, meta)
        if page is None:
            return []
        links = await self._intermediates(page, media, meta)
        if links:
            await self._cache.set(
                key, [asdict(link) for link in links], ttl=self._intermediate_ttl
            )
        self._log.debug("provider_intermediates", provider=self.name, page=page.url, links=len(links))
        return links

    async def _find_page(self, media: MediaRef, meta: MediaMetadata) -> SearchHit | None:
        base_url = await self._base_url()
        hits = await self._search(base_url, self._query(media, meta), media, meta)
        if not hits:
            self._log.info("provider_search_empty", provider=self.name, title=meta.title)
            return None
        # Season pages carry the season's year, not the show's.
        year = None if media.is_tv else meta.year
        return best_match(
            hits, meta.title, year, key=lambda hit: hit.title, threshold=self._match_threshold
        )

    def _query(self, media: MediaRef, meta: MediaMetadata) -> str:
        return meta.title.replace("&", "and")

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        raise NotImplementedError(f"{type(self).__name__}._search() not implemented")

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        raise NotImplementedError(f"{type(self).__name__}._intermediates() not implemented")

    async def _resolve_link(
        self, link: IntermediateLink, media: MediaRef
    ) -> list[StreamDescriptor]:
        descriptors = await self._links.resolve(link.to_request())
        return [self._decorate(d, link, media) for d in descriptors]

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        """Site-specific naming; the default prefixes the resolver label."""
        return replace(descriptor, name=f"{self.name} - {descriptor.name}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _base_url(self) -> str:
        if self.site.registry_key and self._domains is not None:
            url = await self._domains.base_url(self.site.registry_key)
            if url:
                return url
        return self.site.base_url.rstrip("/")

    def _session(self) -> HttpSession:
        """Fresh per-call session; nothing is shared across requests."""
        return HttpSession(self._http)

    async def _list_page_links(self, url: str, *, referer: str | None = None) -> list[LinkEntry]:
        """Links listed on an intermediate list page, unresolved.

        Only resolvers exposing ``intermediates`` know list pages; any other
        URL comes back as a single entry.
        """
        resolver = self._links.find(url)
        intermediates = getattr(resolver, "intermediates", None)
        if intermediates is None:
            return [LinkEntry(server="", url=url)]
        try:
            return await intermediates(self._session(), url, referer=referer)
        except (ResolutionError, httpx.HTTPError) as exc:
            self._log.info(
                "provider_list_page_failed",
                provider=self.name,
                url=url,
                error=f"{type(exc).__name__}: {exc}",
            )
            return []

    async def _unwrap_redirect(self, url: str, *, referer: str | None = None) -> str:
        """Decode one obfuscated redirect page; ``""`` when it does not decode."""
        unwrap = getattr(self._links.get("Redirect"), "unwrap", None)
        if unwrap is None:
            return url
        try:
            return await unwrap(self._session(), url, referer=referer)
        except (ResolutionError, httpx.HTTPError) as exc:
            self._log.info(
                "provider_redirect_failed",
                provider=self.name,
                url=url,
                error=f"{type(exc).__name__}: {exc}",
            )
            return ""

    async def _safe_fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        context: str = "",
        session: HttpSession | None = None,
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Fetch *url* with structured error logging; ``None`` on failure."""
        session = session or self._session()
        try:
            resp = await session.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            self._log.warning("provider_timeout", provider=self.name, url=url, context=context)
        except httpx.HTTPStatusError as exc:
            self._log.warning(
                "provider_http_error",
                provider=self.name,
                url=url,
                status=exc.response.status_code,
                context=context,
            )
        except httpx.HTTPError as exc:
            self._log.warning(
                "provider_fetch_error", provider=self.name, url=url, error=str(exc), context=context
            )
        return None

    async def _fetch_soup(
        self, url: str, *, context: str = "", **kwargs: Any
    ) -> BeautifulSoup | None:
        resp = await self._safe_fetch(url, context=context, **kwargs)
        return parse_html(resp.text) if resp is not None else None

    def _safe_parse_json(self, response: httpx.Response, context: str = "") -> Any:
        try:
            return response.json()
        except ValueError:
            self._log.warning(
                "provider_invalid_json", provider=self.name, url=str(response.url), context=context
            )
            return None

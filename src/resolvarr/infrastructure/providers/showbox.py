"""ShowBox provider (FebBox streams through a TMDB-keyed API).

Needs the user's FebBox ``ui`` cookies from the request configuration;
without any the provider is a no-op. When several cookies are given the
one with the most remaining traffic is used (see
:mod:`resolvarr.infrastructure.link_resolvers.febbox_quota`).
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    RequestConfig,
    StreamDescriptor,
)
from resolvarr.domain.ports.cache import CachePort
from resolvarr.domain.ports.metadata import MetadataPort
from resolvarr.infrastructure.common.quality import codec_details, label_quality
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.link_resolvers import LinkResolverRegistry
from resolvarr.infrastructure.link_resolvers.febbox_quota import select_best_cookie

from .base import ProviderBase

DEFAULT_REGION = "USA7"
API_TIMEOUT = 30.0


def version_streams(data: dict[str, Any]) -> list[StreamDescriptor]:
    """Flatten ``versions[].links[]`` of an API answer into descriptors."""
    streams: list[StreamDescriptor] = []
    for version in data.get("versions") or []:
        version_name = str(version.get("name") or "Unknown")
        version_size = version.get("size") or None
        codecs = tuple(codec_details(version_name))
        for link in version.get("links") or []:
            url = link.get("url")
            if not url:
                continue
            label = str(link.get("name") or "Auto")
            quality = label_quality(link.get("quality") or link.get("name"))
            size = link.get("size") or version_size
            title = version_name
            if codecs:
                title = f"{title}\n{' | '.join(codecs)}"
            streams.append(
                StreamDescriptor(
                    name=f"ShowBox - {label}",
                    title=title,
                    url=str(url),
                    quality=quality,
                    size=str(size) if size else None,
                    codecs=codecs,
                    behavior_hints=BehaviorHints(binge_group=f"showbox-{quality}"),
                    file_name=version_name,
                )
            )
    return streams


class ShowBoxProvider(ProviderBase):
    name = "ShowBox"
    site = ProviderSite(key="showbox", base_url="https://febapi.nuvioapp.space/api/media")

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        metadata: MetadataPort,
        cache: CachePort,
        links: LinkResolverRegistry,
        domains: DomainRegistry | None = None,
        default_region: str = DEFAULT_REGION,
    ) -> None:
        super().__init__(
            http_client, metadata=metadata, cache=cache, links=links, domains=domains
        )
        self._default_region = default_region

    def api_url(self, media: MediaRef, region: str) -> str:
        base = self.site.base_url.rstrip("/")
        if media.is_tv:
            return f"{base}/tv/{media.tmdb_id}/oss={region}/{media.season}/{media.episode}"
        return f"{base}/movie/{media.tmdb_id}/oss={region}"

    async def _streams(
        self, media: MediaRef, meta: MediaMetadata, config: RequestConfig
    ) -> list[StreamDescriptor]:
        if not config.cookies:
            self._log.debug("showbox_cookies_missing")
            return []
        choice = await select_best_cookie(self._http, config.cookies)
        if choice.cookie is None:
            return []

        url = self.api_url(media, config.region or self._default_region)
        url = f"{url}?cookie={quote(choice.cookie, safe='')}"
        resp = await self._safe_fetch(
            url,
            context="api",
            headers={"User-Agent": "NuvioStreamsAddon/1.0"},
            timeout=API_TIMEOUT,
        )
        if resp is None:
            return []
        data = self._safe_parse_json(resp, context="api")
        if not isinstance(data, dict) or not data.get("success"):
            self._log.info("showbox_api_unsuccessful", tmdb_id=media.tmdb_id)
            return []
        return version_streams(data)

"""DramaDrip provider (Asian dramas and films only).

- titles are gated on TMDB origin country / original language
- TV pages: ``Season N`` ``h2`` headers followed by ``.wp-block-buttons``
  quality buttons; movie pages: spoiler-box buttons
- every quality button opens a cinematickit / episodes.modpro page that
  lists per-episode (or per-server) SID/driveseed links
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote_plus

from bs4 import BeautifulSoup

from resolvarr.domain.entities import MediaMetadata, MediaRef, ProviderSite, StreamDescriptor
from resolvarr.infrastructure.common.quality import extract_quality

from .base import IntermediateLink, ProviderBase, SearchHit

ASIAN_COUNTRIES = frozenset(
    "JP KR CN TH TW HK SG MY ID PH VN IN BD LK NP BT MM KH LA BN "
    "MN KZ UZ KG TJ TM AF PK MV MO".split()
)
ASIAN_LANGUAGES = frozenset(
    "ja ko zh th hi ta te bn ur vi id ms tl my km lo si ne dz mn".split()
)
MAJOR_NON_ASIAN_COUNTRIES = frozenset("US GB CA AU FR DE IT ES RU BR MX".split())


@dataclass(frozen=True)
class _Selectors:
    results: str = "h2.entry-title a"
    season_headers: str = "h2.wp-block-heading"
    movie_buttons: str = ".su-spoiler-content .wp-block-button a"
    episode_headers: str = ".entry-content h3"
    series_buttons: str = ".wp-block-button.series_btn a"
    movie_servers: str = ".wp-block-button.movie_btn a"
    supported: tuple[str, ...] = (
        "driveseed.org",
        "tech.unblockedgames.world",
        "tech.creativeexpressionsblog.com",
        "tech.examzculture.in",
    )


_SEL = _Selectors()

_WS_RE = re.compile(r"\s+")


def is_asian_content(meta: MediaMetadata) -> bool:
    """Country first, original language second."""
    countries = set(meta.origin_countries)
    asian_country = bool(countries & ASIAN_COUNTRIES)
    if countries & MAJOR_NON_ASIAN_COUNTRIES and not asian_country:
        return False
    if asian_country:
        return True
    return (meta.original_language or "") in ASIAN_LANGUAGES


def quality_buttons(
    soup: BeautifulSoup, page_url: str, *, season: int | None
) -> list[IntermediateLink]:
    """Quality buttons for *season* (TV) or the movie download box."""
    links: list[IntermediateLink] = []
    if season is not None:
        for header in soup.select(_SEL.season_headers):
            title = header.get_text(" ", strip=True)
            if f"Season {season}" not in title or "zip" in title.lower():
                continue
            container = header.find_next_sibling()
            if container is None or "wp-block-buttons" not in (container.get("class") or []):
                continue
            for anchor in container.select("a"):
                text = anchor.get_text(" ", strip=True)
                href = str(anchor.get("href") or "")
                if href and "zip" not in text.lower():
                    links.append(IntermediateLink(url=href, label=text, referer=page_url))
            break
    else:
        for anchor in soup.select(_SEL.movie_buttons):
            href = str(anchor.get("href") or "")
            if href:
                links.append(
                    IntermediateLink(
                        url=href, label=anchor.get_text(" ", strip=True), referer=page_url
                    )
                )
    return [
        replace(link, quality=extract_quality(link.label))
        for link in links
        if "480p" not in (link.label or "")
    ]


def _supported(href: str) -> bool:
    return any(host in href for host in _SEL.supported)


def kit_target(soup: BeautifulSoup, *, episode: int | None) -> str:
    """SID/driveseed URL for *episode*, or the first movie server."""
    if episode is not None:
        anchors = [
            anchor
            for header in soup.select(_SEL.episode_headers)
            if "Episode" in header.get_text(" ", strip=True)
            for anchor in header.select("a")
        ] or soup.select(_SEL.series_buttons)
        wanted = f"Episode {episode}"
        for anchor in anchors:
            href = str(anchor.get("href") or "")
            text = _WS_RE.sub(" ", anchor.get_text(" ", strip=True))
            low = text.lower()
            if not _supported(href) or "batch" in low or "zip" in low:
                continue
            if re.search(rf"{wanted}(?!\d)", text):
                return href
        return ""

    servers = [
        (anchor.get_text(" ", strip=True), str(anchor.get("href") or ""))
        for anchor in soup.select(_SEL.movie_servers)
    ]
    servers = [(text, href) for text, href in servers if text and _supported(href)]
    for text, href in servers:
        if "Server 1" in text:
            return href
    return servers[0][1] if servers else ""


class DramaDripProvider(ProviderBase):
    name = "DramaDrip"
    site = ProviderSite(
        key="dramadrip",
        base_url="https://dramadrip.com",
        search_path="/?s={query}",
        result_selector=_SEL.results,
        registry_key="dramadrip",
    )

    def _accepts(self, meta: MediaMetadata) -> bool:
        return is_asian_content(meta)

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote_plus(query))
        soup = await self._fetch_soup(url, context="search")
        if soup is None:
            return []
        hits = []
        for anchor in soup.select(self.site.result_selector):
            title = anchor.get_text(" ", strip=True)
            href = str(anchor.get("href") or "")
            if title and href:
                hits.append(SearchHit(title=title, url=href))
        return hits

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page")
        if soup is None:
            return []
        buttons = quality_buttons(soup, page.url, season=media.season if media.is_tv else None)
        targets = await asyncio.gather(
            *(self._kit_target(b.url, page.url, media) for b in buttons)
        )
        return [
            replace(button, url=target, referer=button.url)
            for button, target in zip(buttons, targets)
            if target
        ]

    async def _kit_target(self, url: str, referer: str, media: MediaRef) -> str:
        soup = await self._fetch_soup(url, context="quality_page", referer=referer)
        if soup is None:
            return ""
        return kit_target(soup, episode=media.episode if media.is_tv else None)

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        label = (link.label or descriptor.quality).split("(")[0].strip()
        return replace(
            descriptor,
            name=f"DramaDrip - {label}",
            title=f"{descriptor.file_name or 'Unknown Title'}\n{descriptor.size or 'Unknown Size'}",
            quality=(
                descriptor.quality
                if descriptor.quality != "Unknown"
                else (link.quality or "Unknown")
            ),
        )

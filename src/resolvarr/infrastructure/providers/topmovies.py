"""TopMovies provider (movies only).

Quality ``h3`` headers ("Download ... 1080p [2.1GB]") are each followed
by a leechpro.blog page that lists the SID or driveleech link; that link
is what gets cached and resolved.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote

from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    StreamDescriptor,
)

from .base import IntermediateLink, ProviderBase, SearchHit


@dataclass(frozen=True)
class _Selectors:
    results: str = ".latestPost"
    leechpro: str = 'a[href*="leechpro.blog"]'
    timed_content: str = ".timed-content-client_show_0_5_0"
    targets: str = (
        'a[href*="tech.unblockedgames.world"], a[href*="tech.creativeexpressionsblog.com"], '
        'a[href*="driveseed.org"], a[href*="driveleech.net"]'
    )
    quality: re.Pattern[str] = re.compile(
        r"(480p|720p|1080p|4K|2160p).*?(\[[^\]]+\])?", re.IGNORECASE
    )
    short_quality: re.Pattern[str] = re.compile(r"(\d{3,4}p|4K)", re.IGNORECASE)


_SEL = _Selectors()

_HEADER_QUALITIES = ("480p", "720p", "1080p", "4K")


def quality_headers(soup: BeautifulSoup) -> list[IntermediateLink]:
    """leechpro links under ``Download ... <quality>`` headers, one per quality."""
    links: list[IntermediateLink] = []
    for header in soup.select("h3"):
        text = header.get_text(" ", strip=True)
        if "download" not in text.lower() or not any(q in text for q in _HEADER_QUALITIES):
            continue
        following = header.find_next_sibling()
        anchor = following.select_one(_SEL.leechpro) if following is not None else None
        href = str(anchor.get("href") or "") if anchor is not None else ""
        if not href:
            continue
        m = _SEL.quality.search(text)
        quality = (
            re.sub(r"download.*?movie\s+", "", m.group(0), flags=re.IGNORECASE).strip()
            if m
            else "Unknown Quality"
        )
        if any(link.url == href or link.label == quality for link in links):
            continue
        links.append(IntermediateLink(url=href, quality=quality, label=quality))
    return [link for link in links if "480p" not in (link.label or "")]


def leechpro_target(soup: BeautifulSoup) -> str:
    """First SID/driveseed link, preferring the timed-content block."""
    timed = soup.select_one(_SEL.timed_content)
    anchor = timed.select_one(_SEL.targets) if timed is not None else None
    if anchor is None:
        anchor = soup.select_one(_SEL.targets)
    return str(anchor.get("href") or "") if anchor is not None else ""


class TopMoviesProvider(ProviderBase):
    name = "TopMovies"
    site = ProviderSite(
        key="topmovies",
        base_url="https://topmovies.rodeo",
        search_path="/search/{query}",
        result_selector=_SEL.results,
    )
    movies_only = True

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote(query))
        soup = await self._fetch_soup(url, context="search")
        if soup is None:
            return []
        hits = []
        for item in soup.select(self.site.result_selector):
            anchor = item.select_one("a")
            if anchor is None:
                continue
            title = str(anchor.get("title") or "").strip()
            href = str(anchor.get("href") or "").strip()
            if title and href:
                hits.append(SearchHit(title=title, url=href))
        return hits

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page")
        if soup is None:
            return []
        qualities = quality_headers(soup)
        targets = await asyncio.gather(*(self._leechpro(q.url) for q in qualities))
        return [
            replace(q, url=target, referer=q.url)
            for q, target in zip(qualities, targets)
            if target
        ]

    async def _leechpro(self, url: str) -> str:
        soup = await self._fetch_soup(url, context="leechpro")
        if soup is None:
            return ""
        target = leechpro_target(soup)
        if not target:
            self._log.info("topmovies_leechpro_empty", url=url)
        return target

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        label = link.label or ""
        m = _SEL.short_quality.search(label)
        short = m.group(0) if m else (label or "UNK")
        return replace(
            descriptor,
            name=f"TopMovies - {short}",
            title=f"{descriptor.file_name or 'Unknown Title'}\n{descriptor.size or 'Unknown Size'}",
            quality=short if descriptor.quality == "Unknown" else descriptor.quality,
            behavior_hints=BehaviorHints(binge_group=f"topmovies-{short}"),
        )

"""MoviesDrive provider.

The search is paged (``/page/<n>/?s=``) and stops at the first empty
page. A title page lists ``h5 > a`` buttons, one per encode or season
pack; every button page carries HubCloud / GDFlix links. Episode packs are
narrowed to the wanted episode after resolution, by file name.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote

from bs4 import BeautifulSoup

from resolvarr.domain.entities import MediaMetadata, MediaRef, ProviderSite, StreamDescriptor
from resolvarr.infrastructure.common.quality import extract_quality

from .base import IntermediateLink, ProviderBase, SearchHit

MAX_SEARCH_PAGES = 7


@dataclass(frozen=True)
class _Selectors:
    results: str = "ul.recent-movies > li"
    result_title: str = "figure > img"
    result_link: str = "figure > a"
    buttons: str = "h5 > a"
    hosts: tuple[tuple[str, str], ...] = (
        ("hubcloud", "HubCloud"),
        ("gdflix", "GDFlix"),
        ("gdlink", "GDLink"),
    )


_SEL = _Selectors()


def search_results(soup: BeautifulSoup) -> list[SearchHit]:
    hits: list[SearchHit] = []
    for item in soup.select(_SEL.results):
        image = item.select_one(_SEL.result_title)
        anchor = item.select_one(_SEL.result_link)
        if image is None or anchor is None:
            continue
        title = str(image.get("title") or "").replace("Download ", "").strip()
        href = str(anchor.get("href") or "")
        if title and href:
            hits.append(SearchHit(title=title, url=href))
    return hits


def download_buttons(soup: BeautifulSoup) -> list[str]:
    """``h5 > a`` button targets, zip packs excluded."""
    return [
        str(anchor["href"])
        for anchor in soup.select(_SEL.buttons)
        if anchor.get("href") and "zip" not in anchor.get_text(" ", strip=True).lower()
    ]


def host_links(soup: BeautifulSoup, referer: str) -> list[IntermediateLink]:
    """HubCloud / GDFlix / GDLink anchors of a button page."""
    links: list[IntermediateLink] = []
    for anchor in soup.select("a[href]"):
        href = str(anchor["href"])
        low_href = href.lower()
        if not any(marker in low_href for marker, _ in _SEL.hosts):
            continue
        text = anchor.get_text(" ", strip=True).lower()
        source = next(
            (name for marker, name in _SEL.hosts if marker in text or marker in low_href), ""
        )
        links.append(IntermediateLink(url=href, label=source, referer=referer))
    return links


def matches_episode(name: str, season: int, episode: int) -> bool:
    """``S01E02``, ``S1E2``, ``S01.E02``, ``Season 1 ... Episode 2`` or ``1x02``."""
    patterns = (
        rf"S{season:02d}E{episode:02d}(?!\d)",
        rf"S{season}E{episode}(?!\d)",
        rf"S{season:02d}\.E{episode:02d}(?!\d)",
        rf"S{season}\.E{episode}(?!\d)",
        rf"Season\s*{season}\b.*Episode\s*{episode}\b",
        rf"\b{season}x{episode:02d}(?!\d)",
    )
    return any(re.search(p, name, re.IGNORECASE) for p in patterns)


class MoviesDriveProvider(ProviderBase):
    name = "MoviesDrive"
    site = ProviderSite(
        key="moviesdrive",
        base_url="https://moviesdrive.design",
        search_path="/page/{page}/?s={query}",
        result_selector=_SEL.results,
        registry_key="moviesdrive",
    )

    def _query(self, media: MediaRef, meta: MediaMetadata) -> str:
        query = super()._query(media, meta)
        if not media.is_tv and meta.year:
            query = f"{query} {meta.year}"
        return query

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for page in range(1, MAX_SEARCH_PAGES + 1):
            url = base_url + self.site.search_path.format(page=page, query=quote(query))
            soup = await self._fetch_soup(url, context="search")
            found = search_results(soup) if soup is not None else []
            if not found:
                break
            hits.extend(found)
        return hits

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page")
        if soup is None:
            return []
        buttons = download_buttons(soup)
        if not buttons:
            self._log.info("moviesdrive_no_buttons", page=page.url)
            return []
        pages = await asyncio.gather(
            *(self._fetch_soup(url, context="button", referer=page.url) for url in buttons)
        )
        links: list[IntermediateLink] = []
        seen: set[str] = set()
        for url, button_soup in zip(buttons, pages):
            if button_soup is None:
                continue
            for link in host_links(button_soup, url):
                if link.url not in seen:
                    seen.add(link.url)
                    links.append(link)
        return links

    async def _resolve_link(
        self, link: IntermediateLink, media: MediaRef
    ) -> list[StreamDescriptor]:
        descriptors = await super()._resolve_link(link, media)
        if not media.is_tv:
            return descriptors
        season, episode = media.season or 0, media.episode or 0
        return [
            d
            for d in descriptors
            if matches_episode(d.file_name or d.title or "", season, episode)
        ]

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        quality = descriptor.quality
        if quality == "Unknown" and descriptor.file_name:
            quality = extract_quality(descriptor.file_name)
        name = f"MoviesDrive ({link.label})" if link.label else "MoviesDrive"
        if quality != "Unknown":
            name = f"{name} - {quality}"
        title = "\n".join(
            part for part in (descriptor.name, descriptor.size, descriptor.file_name) if part
        )
        return replace(descriptor, name=name, title=title, quality=quality)

"""HDHub4u provider.

Movie pages list one ``h3``/``h4`` anchor per quality. Series pages either
carry ``EPiSODE n`` headers with their own links, or quality anchors
pointing at techyboy4u redirect pages whose target lists ``Episode n``
links under ``h5`` headers. Links go through the registry as-is; the
redirect decoder, HubCloud, HubDrive, HubCDN, HBLinks and Pixeldrain
resolvers take it from there.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup, Tag

from resolvarr.domain.entities import MediaMetadata, MediaRef, ProviderSite, StreamDescriptor
from resolvarr.infrastructure.common.quality import height_from_text
from resolvarr.infrastructure.matching.title_matcher import best_match

from .base import IntermediateLink, ProviderBase, SearchHit

# Without this cookie the site serves an interstitial instead of the page.
_HEADERS = {"Cookie": "xla=s4t"}


@dataclass(frozen=True)
class _Selectors:
    results: str = "figcaption"
    results_fallback: str = ".thumbnail-wrapper, .thumb-wrapper, li.thumb"
    quality_anchors: str = "h3 a, h4 a"
    episode_page_links: str = "h5 a"
    quality: re.Pattern[str] = re.compile(r"480|720|1080|2160|4K", re.IGNORECASE)
    series_quality: re.Pattern[str] = re.compile(r"1080|720|4K|2160", re.IGNORECASE)
    episode: re.Pattern[str] = re.compile(r"EPiSODE\s*(\d+)|\bE(\d+)", re.IGNORECASE)
    inner_episode: re.Pattern[str] = re.compile(r"Episode\s*(\d+)", re.IGNORECASE)
    episode_block_end: tuple[str, ...] = ("hr", "h3", "h4")


_SEL = _Selectors()


def search_results(soup: BeautifulSoup, base_url: str) -> list[SearchHit]:
    """Result tiles; ``figcaption`` layout first, thumbnail grids second."""
    hits: list[SearchHit] = []
    seen: set[str] = set()
    for selector, anchor_selector in (
        (_SEL.results, "a"),
        (_SEL.results_fallback, "figcaption a, a"),
    ):
        for element in soup.select(selector):
            anchor = element.select_one(anchor_selector)
            if anchor is None:
                continue
            paragraph = anchor.select_one("p")
            title = (paragraph or anchor).get_text(" ", strip=True)
            href = str(anchor.get("href") or "")
            if not title or len(href) <= 10:
                continue
            url = urljoin(base_url + "/", href)
            if url not in seen:
                seen.add(url)
                hits.append(SearchHit(title=title, url=url))
        if hits:
            break
    return hits


def movie_links(soup: BeautifulSoup, page_url: str) -> list[IntermediateLink]:
    links: list[IntermediateLink] = []
    seen: set[str] = set()
    for anchor in soup.select(_SEL.quality_anchors):
        text = anchor.get_text(" ", strip=True)
        href = str(anchor.get("href") or "")
        if not href or href in seen or not _SEL.quality.search(text):
            continue
        seen.add(href)
        height = height_from_text(text)
        links.append(
            IntermediateLink(
                url=href,
                quality=f"{height}p" if height else None,
                label=text,
                referer=page_url,
            )
        )
    return links


def _episode_of(text: str) -> int | None:
    m = _SEL.episode.search(text)
    if not m:
        return None
    return int(m.group(1) or m.group(2))


def _hrefs(element: Tag) -> list[str]:
    return [str(a["href"]) for a in element.select("a[href]")]


def episode_header_links(soup: BeautifulSoup, episode: int) -> list[str]:
    """Links under ``EPiSODE <episode>`` headers, following siblings included."""
    hrefs: list[str] = []
    for header in soup.find_all(["h3", "h4"]):
        if _episode_of(header.get_text(" ", strip=True)) != episode:
            continue
        if _SEL.series_quality.search(" ".join(a.get_text() for a in header.select("a"))):
            continue
        hrefs.extend(_hrefs(header))
        for sibling in header.find_next_siblings():
            if sibling.name in _SEL.episode_block_end:
                break
            hrefs.extend(_hrefs(sibling))
    return list(dict.fromkeys(hrefs))


def quality_redirects(soup: BeautifulSoup) -> list[tuple[str, str]]:
    """``(text, href)`` of series quality anchors that lead to episode lists."""
    found: list[tuple[str, str]] = []
    for anchor in soup.select(_SEL.quality_anchors):
        text = anchor.get_text(" ", strip=True)
        href = str(anchor.get("href") or "")
        if href and _SEL.series_quality.search(text) and "techyboy4u" in href:
            found.append((text, href))
    return found


def episode_page_links(soup: BeautifulSoup, episode: int) -> list[str]:
    """``Episode <episode>`` anchors of a decoded quality page."""
    hrefs: list[str] = []
    for anchor in soup.select(_SEL.episode_page_links):
        m = _SEL.inner_episode.search(anchor.get_text(" ", strip=True))
        if m and int(m.group(1)) == episode and anchor.get("href"):
            hrefs.append(str(anchor["href"]))
    return hrefs


def _source_abbrev(source: str) -> str:
    if "Pixeldrain" in source:
        return "PD"
    if "HubCloud" in source or source in ("FSL", "Download File", "BuzzServer", "10Gbps"):
        return "HC"
    return source[:2].upper()


class HDHub4uProvider(ProviderBase):
    name = "HDHub4u"
    site = ProviderSite(
        key="hdhub4u",
        base_url="https://hdhub4u.frl",
        search_path="/?s={query}",
        result_selector=_SEL.results,
        registry_key="hdhub4u",
    )

    async def _find_page(self, media: MediaRef, meta: MediaMetadata) -> SearchHit | None:
        base_url = await self._base_url()
        hits = await self._search(base_url, self._query(media, meta), media, meta)
        if not hits and meta.year:
            hits = await self._search(base_url, f"{meta.title} {meta.year}", media, meta)
        if not hits:
            self._log.info("provider_search_empty", provider=self.name, title=meta.title)
            return None

        if media.is_tv:
            season_re = re.compile(
                rf"season\s*{media.season}\b|\bs{media.season}\b", re.IGNORECASE
            )
            for hit in hits:
                if season_re.search(hit.title):
                    return hit
            return best_match(
                hits, meta.title, None, key=lambda h: h.title, threshold=self._match_threshold
            )
        return best_match(
            hits, meta.title, meta.year, key=lambda h: h.title, threshold=self._match_threshold
        )

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote_plus(query))
        soup = await self._fetch_soup(
            url, context="search", headers=_HEADERS, referer=f"{base_url}/"
        )
        return search_results(soup, base_url) if soup is not None else []

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page", headers=_HEADERS)
        if soup is None:
            return []
        if not media.is_tv:
            return movie_links(soup, page.url)

        episode = media.episode or 0
        direct = [
            IntermediateLink(url=href, label=f"Episode {episode}", referer=page.url)
            for href in episode_header_links(soup, episode)
        ]
        expanded = await asyncio.gather(
            *(
                self._quality_page_links(text, href, page.url, episode)
                for text, href in quality_redirects(soup)
            )
        )
        links = direct + [link for batch in expanded for link in batch]
        self._log.debug("hdhub4u_episode_links", page=page.url, episode=episode, links=len(links))
        return links

    async def _quality_page_links(
        self, text: str, url: str, referer: str, episode: int
    ) -> list[IntermediateLink]:
        target = await self._unwrap_redirect(url, referer=referer)
        if not target:
            return []
        soup = await self._fetch_soup(target, context="quality_page", headers=_HEADERS)
        if soup is None:
            return []
        height = height_from_text(text)
        return [
            IntermediateLink(
                url=href,
                quality=f"{height}p" if height else None,
                label=f"Episode {episode}",
                referer=target,
            )
            for href in episode_page_links(soup, episode)
        ]

    async def _resolve_link(
        self, link: IntermediateLink, media: MediaRef
    ) -> list[StreamDescriptor]:
        descriptors = await super()._resolve_link(link, media)
        # Streams without a known height are noise on this site.
        return [d for d in descriptors if height_from_text(d.quality)]

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        height = height_from_text(descriptor.quality) or height_from_text(link.quality)
        quality = f"{height}p" if height else descriptor.quality
        heading = quality
        if media.is_tv:
            heading = f"{heading} - Episode {media.episode}"
        title = "\n".join(
            part for part in (heading, descriptor.file_name, descriptor.size) if part
        )
        return replace(
            descriptor,
            name=f"HDHub4u-{quality} | {_source_abbrev(descriptor.name)}",
            title=title,
            quality=quality,
        )

"""UHDMovies provider.

- search via ``/search/<query>``, results are ``a[href*="/download-"]``
- movie pages: every driveleech/SID link, quality taken from the nearest
  descriptive paragraph above it
- TV pages: quality headers in ``.entry-content``; the links paragraph
  below each header carries one ``Episode N`` anchor per episode
- links resolve through SID -> Driveseed
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup, Tag

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    StreamDescriptor,
)
from resolvarr.infrastructure.common.quality import clean_quality, extract_quality

from .base import IntermediateLink, ProviderBase, SearchHit


@dataclass(frozen=True)
class _Selectors:
    results: str = 'a[href*="/download-"]'
    movie_links: str = (
        'a[href*="driveleech.net"], a[href*="driveseed.org"], '
        'a[href*="tech.unblockedgames.world"], a[href*="tech.creativeexpressionsblog.com"], '
        'a[href*="tech.examzculture.in"]'
    )
    headers: str = ".entry-content pre, .entry-content p, .entry-content h3, .entry-content h4"
    size: re.Pattern[str] = re.compile(r"\[\s*([0-9.,]+\s*[KMGT]B)", re.IGNORECASE)
    header_noise: re.Pattern[str] = re.compile(
        r"plot|download|screenshot|trailer|join|powered by", re.IGNORECASE
    )
    header_like: re.Pattern[str] = re.compile(r"p|4k|hevc", re.IGNORECASE)
    season: re.Pattern[str] = re.compile(r"\bseason\s*0*(\d+)|\bS0*(\d+)\b", re.IGNORECASE)


_SEL = _Selectors()

_QUALITY_TOKENS = ("1080p", "720p", "2160p", "4K", "HEVC", "x264", "x265")


def _is_link(tag: Tag) -> bool:
    return tag.select_one(_SEL.movie_links) is not None


def _movie_quality_text(anchor: Tag) -> str:
    """Descriptive text above a movie download link, or ``""``."""
    paragraph = anchor.find_parent("p")
    if paragraph is not None:
        prev = paragraph.find_previous_sibling()
        text = prev.get_text(" ", strip=True) if prev else ""
        if len(text) > 20 and "Download" not in text:
            return text

    parent = anchor.parent
    prev = parent.find_previous_sibling() if parent is not None else None
    text = prev.get_text(" ", strip=True) if prev else ""
    if len(text) > 20:
        return text

    if paragraph is not None:
        strongs = [
            s.get_text(" ", strip=True)
            for sib in paragraph.find_previous_siblings()
            for s in sib.select("strong, b")
        ]
        # find_previous_siblings walks upwards, so the nearest one is first.
        if strongs and len(strongs[0]) > 20:
            return strongs[0]

    current = parent
    for _ in range(5):
        current = current.find_previous_sibling() if current is not None else None
        if current is None:
            break
        text = current.get_text(" ", strip=True)
        if len(text) > 30 and any(token in text for token in _QUALITY_TOKENS):
            return text
    return ""


def movie_links(soup: BeautifulSoup, page_url: str) -> list[IntermediateLink]:
    links: list[IntermediateLink] = []
    seen: set[str] = set()
    for anchor in soup.select(_SEL.movie_links):
        href = str(anchor.get("href") or "").strip()
        if not href or href in seen:
            continue
        seen.add(href)
        text = _movie_quality_text(anchor)
        size = _SEL.size.search(text)
        links.append(
            IntermediateLink(
                url=urljoin(page_url, href),
                quality=extract_quality(text),
                size=size.group(1) if size else None,
                label=clean_quality(text) if text else "Unknown Quality",
                referer=page_url,
            )
        )
    return links


def _header_season(text: str) -> int | None:
    m = _SEL.season.search(text)
    if not m:
        return None
    return int(m.group(1) or m.group(2))


def episode_links(
    soup: BeautifulSoup, page_url: str, season: int, episode: int
) -> list[IntermediateLink]:
    """The ``Episode <episode>`` link below every quality header."""
    episode_re = re.compile(rf"^Episode\s+0*{episode}(?!\d)", re.IGNORECASE)
    links: list[IntermediateLink] = []
    seen: set[str] = set()

    for header in soup.select(_SEL.headers):
        if header.name == "p" and header.select_one("strong, b") is None:
            continue
        text = header.get_text(" ", strip=True)
        if len(text) < 4 or len(text) > 250 or _SEL.header_noise.search(text):
            continue
        header_season = _header_season(text)
        if header_season is not None and header_season != season:
            continue

        links_paragraph = None
        current: Tag | None = header
        for i in range(3):
            current = current.find_next_sibling() if current is not None else None
            if current is None:
                break
            current_text = current.get_text(" ", strip=True)
            if i > 0 and current.name in ("pre", "h3", "h4"):
                break
            if (
                i > 0
                and current.name == "p"
                and current.select_one("strong, b") is not None
                and _SEL.header_like.search(current_text)
            ):
                break
            if current.name == "p" and _is_link(current):
                links_paragraph = current
                break
            if current.name == "p" and current_text:
                text = f"{text} {current_text}"

        if links_paragraph is None:
            continue
        for anchor in links_paragraph.select("a"):
            if not episode_re.search(anchor.get_text(" ", strip=True)):
                continue
            href = str(anchor.get("href") or "").strip()
            if href and href not in seen:
                seen.add(href)
                size = _SEL.size.search(text)
                links.append(
                    IntermediateLink(
                        url=urljoin(page_url, href),
                        quality=extract_quality(text),
                        size=size.group(1) if size else None,
                        label=clean_quality(text),
                        referer=page_url,
                    )
                )
            break
    return links


class UHDMoviesProvider(ProviderBase):
    name = "UHDMovies"
    site = ProviderSite(
        key="uhdmovies",
        base_url="https://uhdmovies.email",
        search_path="/search/{query}",
        result_selector=_SEL.results,
    )

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote(query))
        soup = await self._fetch_soup(url, context="search")
        if soup is None:
            return []
        hits: list[SearchHit] = []
        seen: set[str] = set()
        for anchor in soup.select(self.site.result_selector):
            href = str(anchor.get("href") or "")
            title = anchor.get_text(" ", strip=True)
            if href and title and href not in seen:
                seen.add(href)
                hits.append(SearchHit(title=title, url=urljoin(base_url + "/", href)))
        return hits

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page")
        if soup is None:
            return []
        if media.is_tv:
            return episode_links(soup, page.url, media.season or 0, media.episode or 0)
        return movie_links(soup, page.url)

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        label = link.label or descriptor.quality
        if media.is_tv:
            name = f"UHDMovies - S{media.season}E{media.episode} - {label}"
        else:
            name = f"UHDMovies - {label}"
        quality = descriptor.quality
        if quality == "Unknown" and link.quality:
            quality = link.quality
        return replace(
            descriptor,
            name=name,
            quality=quality,
            behavior_hints=BehaviorHints(binge_group=f"uhdmovies-{quality}"),
        )

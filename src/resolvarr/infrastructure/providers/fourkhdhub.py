"""4KHDHub provider.

Search results are ``.movie-card`` tiles; a tile counts only when its
format badge matches the media type, its year is within one of the TMDB
year and its title is a near-exact match. Download rows carry HubCloud or
HubDrive buttons behind obfuscated redirect pages, which are decoded here
so the cache holds the HubCloud/HubDrive URL itself.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote, urljoin

from bs4 import BeautifulSoup, Tag
from rapidfuzz.distance import Levenshtein

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    StreamDescriptor,
)
from resolvarr.infrastructure.common.html_selectors import (
    extract_text,
    find_by_text,
    first_href_by_text,
)

from .base import IntermediateLink, ProviderBase, SearchHit


@dataclass(frozen=True)
class _Selectors:
    cards: str = ".movie-card"
    card_format: str = ".movie-card-format"
    card_meta: str = ".movie-card-meta"
    card_title: str = ".movie-card-title"
    movie_items: str = ".download-item"
    episode_items: str = ".episode-item"
    episode_title: str = ".episode-title"
    episode_downloads: str = ".episode-download-item"
    file_title: str = ".file-title, .episode-file-title"
    size: re.Pattern[str] = re.compile(r"([\d.]+ ?[GM]B)")
    height: re.Pattern[str] = re.compile(r"(\d{3,4})p", re.IGNORECASE)
    bracket: re.Pattern[str] = re.compile(r"\[.*?]")
    leading_year: re.Pattern[str] = re.compile(r"\s*(\d+)")


_SEL = _Selectors()

MAX_TITLE_DISTANCE = 5


def _card_year(text: str) -> int | None:
    m = _SEL.leading_year.match(text)
    return int(m.group(1)) if m else None


def matching_cards(
    soup: BeautifulSoup, base_url: str, *, title: str, year: int | None, is_tv: bool
) -> list[SearchHit]:
    """Cards of the right type, year within one, title distance under 5."""
    wanted_format = "Series" if is_tv else "Movies"
    hits: list[SearchHit] = []
    for card in soup.select(_SEL.cards):
        if not find_by_text(card, _SEL.card_format, wanted_format):
            continue
        card_year = _card_year(extract_text(card, _SEL.card_meta))
        if card_year is None or (year and abs(card_year - year) > 1):
            continue
        card_title = _SEL.bracket.sub("", extract_text(card, _SEL.card_title)).strip()
        if Levenshtein.distance(card_title.lower(), title.lower()) >= MAX_TITLE_DISTANCE:
            continue
        href = str(card.get("href") or "")
        if href:
            hits.append(SearchHit(title=card_title, url=urljoin(base_url + "/", href)))
    return hits


def download_items(soup: BeautifulSoup, *, season: int | None, episode: int | None) -> list[Tag]:
    """Movie download rows, or the rows of one episode."""
    if season is None or episode is None:
        return soup.select(_SEL.movie_items)
    season_tag = f"S{season:02d}"
    episode_tag = f"Episode-{episode:02d}"
    items: list[Tag] = []
    for block in soup.select(_SEL.episode_items):
        title = block.select_one(_SEL.episode_title)
        if title is None or season_tag not in title.get_text(" ", strip=True):
            continue
        items.extend(
            item
            for item in block.select(_SEL.episode_downloads)
            if episode_tag in item.get_text(" ", strip=True)
        )
    return items


def item_details(item: Tag) -> tuple[str, int, str | None]:
    """``(title, height, size)`` of a download row; height 0 when unknown."""
    html = item.decode_contents()
    title = extract_text(item, _SEL.file_title)
    m = _SEL.height.search(html) or _SEL.height.search(title)
    height = int(m.group(1)) if m else 0
    if not height and ("4K" in title.upper() or "4K" in html.upper()):
        height = 2160
    size = _SEL.size.search(html)
    return title, height, size.group(1) if size else None


def item_button(item: Tag) -> str:
    """HubCloud button href, else HubDrive, else ``""``."""
    return first_href_by_text(item, "HubCloud") or first_href_by_text(item, "HubDrive")


class FourKHDHubProvider(ProviderBase):
    name = "4KHDHub"
    site = ProviderSite(
        key="4khdhub",
        base_url="https://4khdhub.fans",
        search_path="/?s={query}",
        result_selector=_SEL.cards,
    )

    def _query(self, media: MediaRef, meta: MediaMetadata) -> str:
        return f"{meta.title} {meta.year or ''}".strip()

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote(query))
        soup = await self._fetch_soup(url, context="search")
        if soup is None:
            return []
        return matching_cards(soup, base_url, title=meta.title, year=meta.year, is_tv=media.is_tv)

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        soup = await self._fetch_soup(page.url, context="page")
        if soup is None:
            return []
        items = download_items(
            soup,
            season=media.season if media.is_tv else None,
            episode=media.episode if media.is_tv else None,
        )
        self._log.debug("fourkhdhub_items", page=page.url, items=len(items))
        links = await asyncio.gather(*(self._item_link(item, page.url) for item in items))
        return [link for link in links if link is not None]

    async def _item_link(self, item: Tag, page_url: str) -> IntermediateLink | None:
        button = item_button(item)
        if not button:
            return None
        title, height, size = item_details(item)
        target = await self._unwrap_redirect(button, referer=page_url)
        if not target:
            return None
        return IntermediateLink(
            url=target,
            quality=f"{height}p" if height else None,
            size=size,
            label=title or None,
            referer=page_url,
        )

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        quality = link.quality or descriptor.quality
        return replace(
            descriptor,
            name=f"4KHDHub - {descriptor.name} {link.quality or ''}".rstrip(),
            title=f"{descriptor.file_name or link.label or 'Unknown Title'}\n"
            f"{descriptor.size or link.size or 'Unknown Size'}",
            quality=quality,
            behavior_hints=BehaviorHints(binge_group=f"4khdhub-{descriptor.name}"),
        )

"""MoviesMod provider.

- base URL from the domain registry (``moviesmod`` key)
- WordPress search, results in ``.latestPost``
- movie pages: one ``h4`` quality header per encode, each followed by a
  modrefer.in link; TV pages: ``Season N`` ``h3`` headers followed by
  episode/batch buttons
- 480p encodes are skipped
- list pages (modrefer, episodes.modpro.blog) are expanded before caching,
  so the cache holds SID/driveseed links per episode
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup, Tag

from resolvarr.domain.entities import MediaMetadata, MediaRef, ProviderSite, StreamDescriptor
from resolvarr.infrastructure.common.quality import extract_quality, tech_details

from .base import IntermediateLink, ProviderBase, SearchHit


@dataclass(frozen=True)
class _Selectors:
    results: str = ".latestPost"
    content: str = ".thecontent"
    episode_buttons: str = "a.maxbutton-episode-links, a.maxbutton-batch-zip"
    movie_link: str = 'a[href*="modrefer.in"]'


_SEL = _Selectors()

_EPISODE_PATTERNS = (
    re.compile(r"episode\s+(\d+)", re.IGNORECASE),
    re.compile(r"ep\s+(\d+)", re.IGNORECASE),
    re.compile(r"e(\d+)", re.IGNORECASE),
    re.compile(r"\b(\d+)\b"),
)


def episode_number(server: str) -> int | None:
    """Episode number named by a link's server/button text."""
    for pattern in _EPISODE_PATTERNS:
        m = pattern.search(server)
        if m:
            return int(m.group(1))
    return None


def clean_file_name(file_name: str | None) -> str | None:
    """``Movie.2023.1080p.mkv`` -> ``Movie 2023 1080p``."""
    if not file_name:
        return None
    return re.sub(r"[._]", " ", re.sub(r"\.[^/.]+$", "", file_name))


def _block(header: Tag) -> list[Tag]:
    """Siblings after *header* up to the next ``h3``/``h4``."""
    block: list[Tag] = []
    for sibling in header.find_next_siblings():
        if sibling.name in ("h3", "h4"):
            break
        block.append(sibling)
    return block


def _select_in(block: list[Tag], selector: str) -> list[Tag]:
    found: list[Tag] = []
    for element in block:
        if element.css.match(selector):
            found.append(element)
        found.extend(element.select(selector))
    return found


def quality_links(
    soup: BeautifulSoup, page_url: str, *, season: int | None = None
) -> list[IntermediateLink]:
    """Quality links of a movie page, or of *season* on a TV page."""
    content = soup.select_one(_SEL.content)
    if content is None:
        return []
    season_re = re.compile(rf"season\s*0*{season}\b|\bs0*{season}\b", re.IGNORECASE)
    links: list[IntermediateLink] = []
    for header in content.find_all(["h3", "h4"]):
        header_text = header.get_text(" ", strip=True)
        block = _block(header)
        if header.name == "h3" and "season" in header_text.lower():
            if season is None or not season_re.search(header_text):
                continue
            for button in _select_in(block, _SEL.episode_buttons):
                text = button.get_text(" ", strip=True)
                href = str(button.get("href") or "")
                if href and "batch" not in text.lower():
                    links.append(
                        IntermediateLink(
                            url=urljoin(page_url, href),
                            quality=extract_quality(header_text),
                            label=f"{header_text} - {text}",
                            referer=page_url,
                        )
                    )
        elif header.name == "h4" and season is None:
            anchors = _select_in(block, _SEL.movie_link)
            if anchors and anchors[0].get("href"):
                links.append(
                    IntermediateLink(
                        url=str(anchors[0]["href"]),
                        quality=extract_quality(header_text),
                        label=header_text,
                        referer=page_url,
                    )
                )
    return [link for link in links if "480p" not in (link.label or "").lower()]


class MoviesModProvider(ProviderBase):
    name = "MoviesMod"
    site = ProviderSite(
        key="moviesmod",
        base_url="https://moviesmod.build",
        search_path="/?s={query}",
        result_selector=_SEL.results,
        registry_key="moviesmod",
    )

    async def _search(
        self, base_url: str, query: str, media: MediaRef, meta: MediaMetadata
    ) -> list[SearchHit]:
        url = base_url + self.site.search_path.format(query=quote_plus(query))
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
        qualities = quality_links(soup, page.url, season=media.season if media.is_tv else None)
        if not qualities:
            self._log.info("moviesmod_no_quality_links", page=page.url)
            return []

        expanded = await asyncio.gather(
            *(self._list_page_links(q.url, referer=page.url) for q in qualities)
        )
        links: list[IntermediateLink] = []
        for quality, entries in zip(qualities, expanded):
            for entry in entries:
                if media.is_tv and episode_number(entry.server) != media.episode:
                    continue
                links.append(replace(quality, url=entry.url, referer=quality.url))
        return links

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        quality = extract_quality(link.label) if link.label else descriptor.quality
        if quality == "Unknown":
            quality = descriptor.quality
        name = clean_file_name(descriptor.file_name) or f"Stream from {link.label}"
        details = tech_details(link.label)
        detail_text = "".join(f" • {d}" for d in details)
        return replace(
            descriptor,
            name=f"MoviesMod\n{quality}",
            title=f"{name}\n{descriptor.size or ''}{detail_text}",
            quality=quality,
        )

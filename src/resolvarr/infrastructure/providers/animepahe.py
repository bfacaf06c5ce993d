"""AnimePahe provider.

Everything before the download page is JSON:

- ``/api?m=search&q=`` for the anime session id
- ``/api?m=release&id=<session>&page=N`` for the episode list, paged up
  to ``last_page``

The ``/play/<anime>/<episode>`` page lists one pahe.win link per
quality and audio track (``#pickDownload > a``); those go through the
Kwik resolver.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import quote

from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    StreamDescriptor,
)
from resolvarr.infrastructure.matching.title_matcher import best_match

from .base import IntermediateLink, ProviderBase, SearchHit

# DDoS-Guard lets requests through with any value in this cookie.
_HEADERS = {"Cookie": "__ddg2_=1234567890", "Accept": "*/*"}


@dataclass(frozen=True)
class _Selectors:
    downloads: str = "div#pickDownload > a"
    label: re.Pattern[str] = re.compile(r"(.+?)\s+·\s+(\d{3,4})p")


_SEL = _Selectors()


@dataclass(frozen=True)
class Episode:
    number: int
    session: str


def download_links(soup: BeautifulSoup, play_url: str) -> list[IntermediateLink]:
    """One link per ``#pickDownload`` entry: source, quality and SUB/DUB."""
    links: list[IntermediateLink] = []
    for anchor in soup.select(_SEL.downloads):
        href = str(anchor.get("href") or "")
        if not href:
            continue
        span = anchor.select_one("span")
        audio = "DUB" if span is not None and "eng" in span.get_text() else "SUB"
        m = _SEL.label.search(anchor.get_text(" ", strip=True))
        quality = f"{m.group(2)}p" if m else None
        links.append(IntermediateLink(url=href, quality=quality, label=audio, referer=play_url))
    return links


def pick_episode(episodes: list[Episode], wanted: int | None) -> Episode | None:
    """Exact episode number, else the closest one; first episode for movies."""
    if not episodes:
        return None
    if wanted is None:
        return episodes[0]
    for episode in episodes:
        if episode.number == wanted:
            return episode
    return min(episodes, key=lambda e: abs(e.number - wanted))


class AnimePaheProvider(ProviderBase):
    name = "AnimePahe"
    site = ProviderSite(
        key="animepahe",
        base_url="https://animepahe.ru",
        search_path="/api?m=search&l=8&q={query}",
    )

    async def _api(self, url: str, context: str) -> dict[str, Any] | None:
        resp = await self._safe_fetch(url, context=context, headers=_HEADERS)
        if resp is None:
            return None
        data = self._safe_parse_json(resp, context=context)
        return data if isinstance(data, dict) else None

    async def _find_page(self, media: MediaRef, meta: MediaMetadata) -> SearchHit | None:
        base_url = await self._base_url()
        data = await self._api(
            base_url + self.site.search_path.format(query=quote(meta.title)), "search"
        )
        results = [r for r in (data or {}).get("data") or [] if r.get("session")]
        if not results:
            self._log.info("provider_search_empty", provider=self.name, title=meta.title)
            return None

        def hit(result: dict[str, Any]) -> SearchHit:
            return SearchHit(
                title=str(result.get("title") or ""),
                url=f"{base_url}/anime/{result['session']}",
            )

        for result in results:
            if (
                str(result.get("title") or "").lower() == meta.title.lower()
                and result.get("year") == meta.year
            ):
                return hit(result)
        hits = [hit(r) for r in results]
        return best_match(
            hits, meta.title, None, key=lambda h: h.title, threshold=self._match_threshold
        ) or hits[0]

    async def episodes(self, base_url: str, anime_session: str) -> list[Episode]:
        """Every episode of *anime_session*, following ``last_page``."""
        url = f"{base_url}/api?m=release&id={anime_session}&sort=episode_asc&page={{page}}"
        first = await self._api(url.format(page=1), "release")
        if not first or not first.get("data"):
            return []
        pages = [first]
        last_page = int(first.get("last_page") or 1)
        if last_page > 1:
            rest = await asyncio.gather(
                *(self._api(url.format(page=p), "release") for p in range(2, last_page + 1))
            )
            pages.extend(p for p in rest if p)
        found = [
            Episode(number=int(item["episode"]), session=str(item["session"]))
            for page in pages
            for item in page.get("data") or []
            if item.get("session") and item.get("episode") is not None
        ]
        return sorted(found, key=lambda e: e.number)

    async def _intermediates(
        self, page: SearchHit, media: MediaRef, meta: MediaMetadata
    ) -> list[IntermediateLink]:
        base_url = await self._base_url()
        anime_session = page.url.rstrip("/").rsplit("/", 1)[-1]
        episode = pick_episode(
            await self.episodes(base_url, anime_session),
            media.episode if media.is_tv else None,
        )
        if episode is None:
            self._log.info("animepahe_no_episodes", anime=anime_session)
            return []
        if media.is_tv and episode.number != media.episode:
            self._log.info(
                "animepahe_episode_substituted", wanted=media.episode, used=episode.number
            )

        play_url = f"{base_url}/play/{anime_session}/{episode.session}"
        soup = await self._fetch_soup(play_url, context="play", headers=_HEADERS)
        if soup is None:
            return []
        return download_links(soup, play_url)

    def _decorate(
        self, descriptor: StreamDescriptor, link: IntermediateLink, media: MediaRef
    ) -> StreamDescriptor:
        quality = link.quality or descriptor.quality
        label = f"AnimePahe {link.label or 'SUB'} {quality}"
        return replace(
            descriptor,
            name=label,
            title="\n".join(part for part in (label, descriptor.file_name) if part),
            quality=quality,
            behavior_hints=BehaviorHints(binge_group=f"animepahe-{link.label or 'SUB'}-{quality}"),
        )

"""Link-list pages in front of the SID and driveseed redirectors.

- ``modrefer.in/?url=<b64>``: the target page is base64 in the query; its
  links sit inside a timed-content block.
- ``episodes.modpro.blog``: per-episode link list in the entry content.
- ``cinematickit.org``: driveseed links, else modrefer links.

None of these pages carries media, so every link found is handed on to
whichever resolver claims it.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

import httpx
import structlog
from bs4 import Tag

from resolvarr.domain.entities import (
    ResolutionRequest,
    StreamDescriptor,
    StructuralParseError,
)
from resolvarr.infrastructure.common.html_selectors import parse_html
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.obfuscation import b64decode

from ._chain import error_kind_for
from .base import ChainResolver

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _Selectors:
    modrefer_links: str = ".timed-content-client_show_0_5_0 a"
    episode_links: str = (
        '.entry-content a[href*="driveseed.org"], '
        '.entry-content a[href*="tech.unblockedgames.world"], '
        '.entry-content a[href*="tech.creativeexpressionsblog.com"], '
        '.entry-content a[href*="tech.examzculture.in"]'
    )
    kit_links: str = 'a[href*="driveseed.org"]'
    kit_fallback_links: str = 'a[href*="modrefer.in"], a[href*="dramadrip.com"]'


_SEL = _Selectors()

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class LinkEntry:
    """One link of a list page: server/button text plus target URL."""

    server: str
    url: str


def decode_modrefer_target(url: str) -> str:
    """The page a ``modrefer.in/?url=<b64>`` link points at."""
    encoded = parse_qs(urlsplit(url).query).get("url", [""])[0]
    if not encoded:
        raise StructuralParseError("modrefer link has no url parameter")
    try:
        return b64decode(encoded).strip()
    except ValueError as exc:
        raise StructuralParseError(f"modrefer url parameter is not base64: {exc}") from exc


def _entries(tags: list[Tag], *, skip_batch: bool) -> list[LinkEntry]:
    entries = []
    for tag in tags:
        href = str(tag.get("href") or "").strip()
        text = _WS_RE.sub(" ", tag.get_text(" ", strip=True))
        if not href:
            continue
        if skip_batch and (not text or "batch" in text.lower()):
            continue
        entries.append(LinkEntry(server=text, url=href))
    return entries


class ModReferResolver(ChainResolver):
    name = "ModRefer"
    _host_markers = ("modrefer.in", "episodes.modpro.blog", "links.modpro.blog", "cinematickit.org")

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        session, request = self._open_session(request)
        try:
            entries = await self.intermediates(session, request.url, referer=request.referer)
        except (StructuralParseError, httpx.HTTPError) as exc:
            log.info(
                "chain_failed",
                chain=self.name,
                url=request.url,
                kind=error_kind_for(exc).value,
                reason=str(exc),
            )
            return []

        # Each entry starts its own chain; siblings never share cookies.
        batches = await asyncio.gather(
            *(
                self._hand_off(
                    ResolutionRequest(url=entry.url, referer=request.url, hints=request.hints),
                    depth=depth,
                )
                for entry in entries
            )
        )
        return [d for batch in batches for d in batch]

    async def intermediates(
        self, session: HttpSession, url: str, *, referer: str | None = None
    ) -> list[LinkEntry]:
        """Links listed on the page at *url*, without resolving them."""
        host = (urlsplit(url).hostname or "").lower()
        if "modrefer.in" in host:
            target = decode_modrefer_target(url)
            response = await session.get(target, referer=referer)
            response.raise_for_status()
            soup = parse_html(response.text)
            return _entries(soup.select(_SEL.modrefer_links), skip_batch=False)

        response = await session.get(url, referer=referer)
        response.raise_for_status()
        soup = parse_html(response.text)
        if "cinematickit.org" in host:
            entries = _entries(soup.select(_SEL.kit_links), skip_batch=True)
            if not entries:
                entries = [
                    e
                    for e in _entries(soup.select(_SEL.kit_fallback_links), skip_batch=False)
                    if e.server
                ]
            return entries
        return _entries(soup.select(_SEL.episode_links), skip_batch=True)

"""GDFlix / GDLink resolver.

The file page lists name and size as ``Name :`` / ``Size :`` items and a
row of buttons; each recognised button is one branch:

- DIRECT DL and CLOUD DOWNLOAD [R2]: the href is the media URL.
- PixelDrain DL: rewritten to the file API.
- Instant DL: GET without following redirects; the media URL is whatever
  follows ``url=`` in the ``location`` header.

Unknown buttons are skipped. The host is swapped for the newest GDFlix
domain from the domain registry before anything is fetched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx
import structlog
from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StreamDescriptor,
    StructuralParseError,
)
from resolvarr.infrastructure.common.html_selectors import parse_html
from resolvarr.infrastructure.common.quality import extract_quality
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.http.session import HttpSession

from ._chain import error_kind_for
from .base import ChainResolver
from .pixeldrain import pixeldrain_direct_url

log = structlog.get_logger(__name__)

FALLBACK_BASE_URL = "https://new10.gdflix.dad"

_HOST_RE = re.compile(r"https://[^./]+\.gdflix\.[^/]+|https://gdlink\.[^/]+")


@dataclass(frozen=True)
class _Selectors:
    list_items: str = "ul > li.list-group-item"
    buttons: str = "div.text-center a"


_SEL = _Selectors()

# (button text marker, label); order only matters for overlapping markers.
_BUTTONS: tuple[tuple[str, str], ...] = (
    ("DIRECT DL", "GDFlix[Direct]"),
    ("CLOUD DOWNLOAD [R2]", "GDFlix[Cloud Download]"),
    ("PixelDrain DL", "Pixeldrain"),
    ("Instant DL", "GDFlix[Instant Download]"),
)


def rewrite_host(url: str, base_url: str) -> str:
    """Replace a ``*.gdflix.*`` or ``gdlink.*`` origin with *base_url*."""
    return _HOST_RE.sub(base_url.rstrip("/"), url, count=1)


def page_details(soup: BeautifulSoup) -> tuple[str | None, str | None]:
    file_name = size = None
    for item in soup.select(_SEL.list_items):
        text = item.get_text(" ", strip=True)
        if "Name :" in text:
            file_name = text.replace("Name :", "").strip() or None
        elif "Size :" in text:
            size = text.replace("Size :", "").strip() or None
    return file_name, size


class GDFlixResolver(ChainResolver):
    name = "GDFlix"
    _host_markers = ("gdflix.", "gdlink.")

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        validate: bool = False,
        domains: DomainRegistry | None = None,
    ) -> None:
        super().__init__(http_client, validate=validate)
        self._domains = domains

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        session, request = self._open_session(request)
        base_url = FALLBACK_BASE_URL
        if self._domains is not None:
            base_url = await self._domains.base_url("gdflix") or FALLBACK_BASE_URL
        request = request.next_hop(rewrite_host(request.url, base_url), referer=request.referer)

        try:
            response = await session.get(request.url, referer=request.referer)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.info(
                "chain_failed",
                chain=self.name,
                url=request.url,
                kind=error_kind_for(exc).value,
                reason=str(exc),
            )
            return []

        page_url = str(response.url)
        soup = parse_html(response.text)
        file_name, size = page_details(soup)
        branch = request.with_hints(
            file_name=file_name or request.hints.file_name,
            size=size or request.hints.size,
            quality=extract_quality(file_name) if file_name else request.hints.quality,
        )

        results: list[StreamDescriptor] = []
        for tag in soup.select(_SEL.buttons):
            href = str(tag.get("href") or "").strip()
            text = tag.get_text(" ", strip=True)
            label = next((lb for marker, lb in _BUTTONS if marker in text), None)
            if not href or label is None:
                continue
            results.extend(
                await self._run(
                    session,
                    branch.next_hop(href, referer=page_url),
                    depth=depth,
                    hop=lambda req, lb=label: self._button_hop(session, req, lb),
                    chain=f"{self.name}:{label}",
                    max_hops=1,
                )
            )
        return results

    async def _button_hop(
        self, session: HttpSession, request: ResolutionRequest, label: str
    ) -> ChainStep:
        if label == "Pixeldrain":
            direct = pixeldrain_direct_url(request.url)
            return self._terminal(request, direct or request.url, label=label)
        if label == "GDFlix[Instant Download]":
            return self._terminal(request, await self._instant(session, request.url), label=label)
        return self._terminal(request, request.url, label=label)

    async def _instant(self, session: HttpSession, url: str) -> str:
        response = await session.get(url, follow_redirects=False)
        location = response.headers.get("location")
        if not location:
            raise StructuralParseError("instant dl sent no location")
        if "url=" in location:
            return location[location.index("url=") + 4 :]
        return location

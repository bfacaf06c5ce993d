"""HubCloud resolver.

A HubCloud link leads (via ``#download`` or a ``var url = '...'`` script)
to a card page listing one file and several server buttons. Every button
is its own chain branch:

- Download File / FSL Server / S3 Server: the href is the media URL.
- BuzzServer: GET ``<href>/download`` without following redirects; the
  target comes back in ``hx-redirect`` (or ``location``), relative to the
  button's origin.
- Pixeldrain: rewritten to the file API.
- 10Gbps: walk redirect-disabled hops until a ``location`` carries the
  media URL in its ``link=`` parameter.
- Anything else is handed to whichever resolver claims it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import unquote, urljoin, urlsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionError,
    ResolutionRequest,
    StreamDescriptor,
    StructuralParseError,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.common.html_selectors import extract_text, parse_html
from resolvarr.infrastructure.common.quality import height_from_text
from resolvarr.infrastructure.http.session import HttpSession

from ._chain import error_kind_for
from .base import ChainResolver
from .pixeldrain import pixeldrain_direct_url

log = structlog.get_logger(__name__)

_TENGBPS_MAX_HOPS = 5


@dataclass(frozen=True)
class _Selectors:
    download: tuple[str, ...] = ("#download", "a#download", "a.btn[href*='hubcloud.php']")
    script_url: re.Pattern[str] = re.compile(r"var url ?= ?'([^']*)'")
    header: str = "div.card-header"
    size: str = "i#size"
    buttons: str = "div.card-body h2 a.btn"


_SEL = _Selectors()


class ButtonKind(str, Enum):
    DIRECT = "direct"
    BUZZ = "buzz"
    PIXELDRAIN = "pixeldrain"
    TENGBPS = "10gbps"
    OTHER = "other"


def classify_button(text: str, href: str) -> tuple[ButtonKind, str]:
    """Button kind plus the server label used in the stream name."""
    if "Download File" in text:
        return ButtonKind.DIRECT, "HubCloud"
    if "FSL Server" in text:
        return ButtonKind.DIRECT, "HubCloud - FSL Server"
    if "S3 Server" in text:
        return ButtonKind.DIRECT, "HubCloud - S3 Server"
    if "BuzzServer" in text:
        return ButtonKind.BUZZ, "HubCloud - BuzzServer"
    if "pixeldra" in href:
        return ButtonKind.PIXELDRAIN, "Pixeldrain"
    if "10Gbps" in text:
        return ButtonKind.TENGBPS, "HubCloud - 10Gbps"
    return ButtonKind.OTHER, "HubCloud"


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


class HubCloudResolver(ChainResolver):
    name = "HubCloud"
    _host_markers = ("hubcloud.",)

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        session, request = self._open_session(request)
        request = request.next_hop(
            request.url.replace("hubcloud.ink", "hubcloud.dad"), referer=request.referer
        )

        try:
            card_url, soup = await self._card_page(session, request)
        except (ResolutionError, httpx.HTTPError) as exc:
            log.info(
                "chain_failed",
                chain=self.name,
                url=request.url,
                kind=error_kind_for(exc).value,
                reason=str(exc),
            )
            return []

        header = extract_text(soup, _SEL.header)
        size = extract_text(soup, _SEL.size) or request.hints.size
        quality = f"{height_from_text(header, default=2160)}p"
        branch = request.with_hints(
            quality=quality, size=size, file_name=header or request.hints.file_name
        )

        results: list[StreamDescriptor] = []
        for kind, label, href in self._buttons(soup):
            results.extend(
                await self._run(
                    session,
                    branch.next_hop(urljoin(card_url, href), referer=card_url),
                    depth=depth,
                    hop=lambda req, k=kind, lb=label: self._button_hop(session, req, k, lb),
                    chain=f"{self.name}:{kind.value}",
                    max_hops=_TENGBPS_MAX_HOPS if kind is ButtonKind.TENGBPS else 1,
                    accepts=lambda _url, k=kind: k is ButtonKind.TENGBPS,
                )
            )
        return results

    async def _card_page(
        self, session: HttpSession, request: ResolutionRequest
    ) -> tuple[str, BeautifulSoup]:
        """Fetch the card page; ``hubcloud.php`` URLs already are one."""
        response = await session.get(request.url, referer=request.referer)
        response.raise_for_status()
        page_url = str(response.url)
        soup = parse_html(response.text)
        if "hubcloud.php" in request.url or soup.select(_SEL.buttons):
            return page_url, soup

        target = ""
        for selector in _SEL.download:
            tag = soup.select_one(selector)
            if tag is not None and tag.get("href"):
                target = str(tag["href"]).strip()
                break
        if not target:
            match = _SEL.script_url.search(response.text)
            target = match.group(1) if match else ""
        if not target:
            raise StructuralParseError("hubcloud download link missing")

        card_url = urljoin(page_url, target)
        response = await session.get(card_url, referer=page_url)
        response.raise_for_status()
        return str(response.url), parse_html(response.text)

    def _buttons(self, soup: BeautifulSoup) -> list[tuple[ButtonKind, str, str]]:
        buttons = []
        for tag in soup.select(_SEL.buttons):
            href = str(tag.get("href") or "").strip()
            if not href:
                continue
            kind, label = classify_button(tag.get_text(" ", strip=True), href)
            buttons.append((kind, label, href))
        return buttons

    async def _button_hop(
        self,
        session: HttpSession,
        request: ResolutionRequest,
        kind: ButtonKind,
        label: str,
    ) -> ChainStep:
        if kind is ButtonKind.DIRECT:
            return self._terminal(request, request.url, label=label)

        if kind is ButtonKind.PIXELDRAIN:
            direct = pixeldrain_direct_url(request.url)
            if direct is None:
                raise StructuralParseError("pixeldrain id missing")
            return self._terminal(request, direct, label=label)

        if kind is ButtonKind.BUZZ:
            return self._terminal(request, await self._buzz(session, request.url), label=label)

        if kind is ButtonKind.TENGBPS:
            return await self._tengbps_hop(session, request, label)

        if self._registry is not None and self._registry.find(request.url) is not None:
            return ChainStep.redirect(request)
        return self._terminal(request, request.url, label=label)

    async def _buzz(self, session: HttpSession, href: str) -> str:
        response = await session.get(
            f"{href.rstrip('/')}/download", referer=href, follow_redirects=False
        )
        target = response.headers.get("hx-redirect") or response.headers.get("location")
        if not target:
            raise UpstreamRejectionError("buzzserver sent no redirect header")
        if target.startswith("http"):
            return target
        return _origin(href) + target

    async def _tengbps_hop(
        self, session: HttpSession, request: ResolutionRequest, label: str
    ) -> ChainStep:
        response = await session.get(request.url, follow_redirects=False)
        location = response.headers.get("location")
        if not location:
            raise UpstreamRejectionError("10gbps hop sent no location")
        if "link=" in location:
            return self._terminal(
                request, unquote(location[location.index("link=") + 5 :]), label=label
            )
        return ChainStep.redirect(
            request.next_hop(urljoin(request.url, location), referer=request.url)
        )

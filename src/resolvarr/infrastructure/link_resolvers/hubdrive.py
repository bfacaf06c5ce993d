"""HubDrive resolver: one primary button, usually pointing at HubCloud."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StructuralParseError,
)
from resolvarr.infrastructure.common.html_selectors import parse_html
from resolvarr.infrastructure.http.session import HttpSession

from .base import ChainResolver


@dataclass(frozen=True)
class _Selectors:
    primary: tuple[str, ...] = (
        ".btn.btn-primary.btn-user.btn-success1.m-1",
        "a.btn-success1",
        'a[href*="hubcloud"]',
    )


_SEL = _Selectors()


class HubDriveResolver(ChainResolver):
    name = "HubDrive"
    _host_markers = ("hubdrive.",)

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        response = await session.get(request.url, referer=request.referer)
        response.raise_for_status()
        page_url = str(response.url)
        soup = parse_html(response.text)

        href = ""
        for selector in _SEL.primary:
            tag = soup.select_one(selector)
            if tag is not None and tag.get("href"):
                href = urljoin(page_url, str(tag["href"]).strip())
                break
        if not href:
            raise StructuralParseError("hubdrive download button missing")

        if "hubcloud" in href:
            return ChainStep.redirect(request.next_hop(href, referer=page_url))
        return self._terminal(request, href)

"""HBLinks resolver: a plain list of mirror links, each handed on."""

from __future__ import annotations

import asyncio

import httpx
import structlog

from resolvarr.domain.entities import ResolutionRequest, StreamDescriptor
from resolvarr.infrastructure.common.html_selectors import extract_links, parse_html

from ._chain import error_kind_for
from .base import ChainResolver

log = structlog.get_logger(__name__)

_LINKS = "h3 a, div.entry-content p a"


class HBLinksResolver(ChainResolver):
    name = "HBLinks"
    _host_markers = ("hblinks.",)

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        session, request = self._open_session(request)
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
        links = [
            link["href"]
            for link in extract_links(parse_html(response.text), _LINKS, base_url=page_url)
        ]
        batches = await asyncio.gather(
            *(
                self._hand_off(
                    ResolutionRequest(url=link, referer=page_url, hints=request.hints),
                    depth=depth,
                )
                for link in dict.fromkeys(links)
            )
        )
        return [d for batch in batches for d in batch]

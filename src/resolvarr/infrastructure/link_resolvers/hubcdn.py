"""HubCDN resolver: the media link hides base64-encoded in an ``r=`` param."""

from __future__ import annotations

import re

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StructuralParseError,
)
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.obfuscation import b64decode

from .base import ChainResolver

_ENCODED_RE = re.compile(r"r=([A-Za-z0-9+/=]+)")


def decode_hubcdn_page(html: str) -> str | None:
    """Value after the last ``link=`` in the decoded ``r=`` payload."""
    match = _ENCODED_RE.search(html)
    if not match:
        return None
    try:
        decoded = b64decode(match.group(1))
    except ValueError:
        return None
    marker = decoded.rfind("link=")
    if marker == -1:
        return None
    return decoded[marker + 5 :].strip() or None


class HubCdnResolver(ChainResolver):
    name = "HubCdn"
    _host_markers = ("hubcdn.",)

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        response = await session.get(request.url, referer=request.referer)
        response.raise_for_status()
        link = decode_hubcdn_page(response.text)
        if not link:
            raise StructuralParseError("hubcdn payload missing")
        return self._terminal(request, link)

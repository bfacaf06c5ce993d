"""Pixeldrain resolver: viewer URLs rewritten to the file API, no network."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StructuralParseError,
)
from resolvarr.infrastructure.http.session import HttpSession

from .base import ChainResolver

_FILE_ID_RE = re.compile(r"/(?:u|file|api/file)/([A-Za-z0-9]+)")


def pixeldrain_direct_url(url: str) -> str | None:
    """``https://pixeldrain.net/u/<id>`` -> ``https://pixeldrain.net/api/file/<id>?download``."""
    parts = urlsplit(url)
    match = _FILE_ID_RE.search(parts.path)
    if not match or not parts.hostname:
        return None
    return f"{parts.scheme or 'https'}://{parts.netloc}/api/file/{match.group(1)}?download"


class PixeldrainResolver(ChainResolver):
    name = "Pixeldrain"
    _host_markers = ("pixeldrain.", "pixeldra.in")

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        direct = pixeldrain_direct_url(request.url)
        if direct is None:
            raise StructuralParseError(f"no pixeldrain file id in {request.url}")
        return self._terminal(request, direct)

"""Instant Download (video-seed / video-leech) resolver.

The Instant Download button carries an opaque ``url`` query value. It is
POSTed as ``keys`` to the same origin's ``/api`` endpoint with the host
name in ``x-token``; the JSON answer holds the media URL. Buttons that
already point at a CDN are passed through.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urljoin, urlsplit

import structlog

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.common.parsers import encode_filename_spaces
from resolvarr.infrastructure.http.session import HttpSession

from .base import ChainResolver

log = structlog.get_logger(__name__)

_DIRECT_MARKERS = ("cdn.video-leech.pro", "workers.dev", ".r2.dev")
_SPACE_ENCODED_MARKERS = ("workers.dev", ".r2.dev")


def is_direct_cdn_link(href: str) -> bool:
    """True for CDN links that need no API round trip."""
    host = (urlsplit(href).hostname or "").lower()
    return any(marker in host for marker in _DIRECT_MARKERS)


def normalize_cdn_link(href: str) -> str:
    if any(marker in href for marker in _SPACE_ENCODED_MARKERS):
        return encode_filename_spaces(href)
    return href


async def instant_download(session: HttpSession, href: str, *, origin: str = "") -> str:
    """Resolve an Instant Download href to the media URL.

    The ``url`` query parameter is read by name; without one only known
    CDN hosts pass through. Raises ``UpstreamRejectionError`` when there
    is neither or when the API answers without a URL.
    """
    absolute = urljoin(origin, href) if origin else href
    parts = urlsplit(absolute)
    keys = parse_qs(parts.query).get("url", [""])[0]
    if not keys:
        if is_direct_cdn_link(absolute):
            return normalize_cdn_link(absolute)
        raise UpstreamRejectionError(f"instant link has no url parameter: {absolute}")

    api_url = f"{parts.scheme}://{parts.netloc}/api"
    response = await session.post(
        api_url,
        data={"keys": keys},
        headers={"x-token": parts.hostname or ""},
    )
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamRejectionError(f"instant api returned non-json ({response.status_code})") from exc

    url = payload.get("url") if isinstance(payload, dict) else None
    if not url or not isinstance(url, str):
        raise UpstreamRejectionError("instant api returned no url")
    log.debug("instant_download_resolved", api=api_url)
    return normalize_cdn_link(url)


class VideoSeedResolver(ChainResolver):
    name = "Instant Download"
    _host_markers = ("video-seed.", "video-leech.")

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        return self._terminal(request, await instant_download(session, request.url))

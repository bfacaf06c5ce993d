"""Pahe / Kwik resolver used by AnimePahe download links.

1. GET ``<url>/i`` without following redirects; the ``location`` header
   embeds the kwik URL.
2. GET the kwik page and pull the four packer arguments out of its inline
   script.
3. ``decrypt_pahe`` yields an HTML form: action URL plus ``_token`` value.
4. POST ``_token`` as multipart without following redirects. Only a 302
   counts; its ``Location`` is the media URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    StructuralParseError,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.obfuscation import decrypt_pahe

from .base import ChainResolver

log = structlog.get_logger(__name__)

KWIK_REFERER = "https://kwik.cx/"


@dataclass(frozen=True)
class _Selectors:
    params: re.Pattern[str] = re.compile(r'\("(\w+)",\d+,"(\w+)",(\d+),(\d+),\d+\)')
    action: re.Pattern[str] = re.compile(r'action="([^"]+)"')
    token: re.Pattern[str] = re.compile(r'value="([^"]+)"')


_SEL = _Selectors()


def kwik_url_from_location(location: str) -> str:
    """The last ``https://`` URL embedded in a pahe redirect location."""
    return "https://" + location.split("https://")[-1]


def decrypt_kwik_form(html: str) -> tuple[str, str]:
    """``(action, token)`` of the form hidden in a kwik page script."""
    match = _SEL.params.search(html)
    if not match:
        raise StructuralParseError("kwik decryption parameters missing")
    full, key, v1, v2 = match.groups()
    try:
        decrypted = decrypt_pahe(full, key, int(v1), int(v2))
    except ValueError as exc:
        raise StructuralParseError(f"kwik payload undecryptable: {exc}") from exc
    action = _SEL.action.search(decrypted)
    token = _SEL.token.search(decrypted)
    if not action or not token:
        raise StructuralParseError("kwik form action or token missing")
    return action.group(1), token.group(1)


class KwikResolver(ChainResolver):
    name = "Kwik"
    _host_markers = ("pahe.win", "kwik.")

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        kwik_url = request.url
        if "kwik." not in request.url:
            redirect = await session.get(
                f"{request.url.rstrip('/')}/i", referer=request.referer, follow_redirects=False
            )
            location = redirect.headers.get("location")
            if not location:
                raise StructuralParseError("pahe redirect location missing")
            kwik_url = kwik_url_from_location(location)

        page = await session.get(kwik_url, referer=KWIK_REFERER)
        page.raise_for_status()
        action, token = decrypt_kwik_form(page.text)

        final = await session.post(
            action,
            files={"_token": (None, token)},
            referer=str(page.url),
            follow_redirects=False,
        )
        if final.status_code != 302:
            raise UpstreamRejectionError(f"kwik form answered {final.status_code}, expected 302")
        location = final.headers.get("location")
        if not location:
            raise UpstreamRejectionError("kwik redirect without location")
        log.debug("kwik_resolved", url=request.url)
        return self._terminal(request, location)

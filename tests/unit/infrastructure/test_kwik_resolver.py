"""Tests for KwikResolver: pahe redirect, packed form, token POST."""

from __future__ import annotations

import httpx
import pytest
import respx

from resolvarr.domain.entities import ResolutionRequest, StructuralParseError
from resolvarr.infrastructure.link_resolvers.kwik import (
    KWIK_REFERER,
    KwikResolver,
    decrypt_kwik_form,
    kwik_url_from_location,
)

_KWIK_URL = "https://kwik.cx/f/abc"
_ACTION = "https://kwik.cx/d/abc"
_MEDIA = "https://cdn.example.com/files/Episode.05.mp4"


def _packed_page(form: str, v1: int = 7) -> str:
    """Kwik page whose packer call decrypts to *form* (key ``0123456789x``)."""
    full = "".join(f"{ord(ch) + v1}x" for ch in form)
    return f'<script>eval(function(){{}}("{full}",55,"0123456789x",{v1},10,37))</script>'


_FORM = f'<form action="{_ACTION}" method="POST"><input type="hidden" name="_token" value="tok42">'


class TestHelpers:
    def test_kwik_url_from_location(self) -> None:
        location = "https://pahe.win/r?u=https://kwik.cx/f/abc"
        assert kwik_url_from_location(location) == _KWIK_URL

    def test_decrypt_form(self) -> None:
        assert decrypt_kwik_form(_packed_page(_FORM)) == (_ACTION, "tok42")

    def test_missing_parameters(self) -> None:
        with pytest.raises(StructuralParseError):
            decrypt_kwik_form("<html>no script</html>")

    def test_form_without_token(self) -> None:
        with pytest.raises(StructuralParseError):
            decrypt_kwik_form(_packed_page(f'<form action="{_ACTION}">'))


class TestKwikResolver:
    @respx.mock
    @pytest.mark.asyncio
    async def test_token_post_redirect_is_media(self) -> None:
        page = respx.get(_KWIK_URL).respond(200, html=_packed_page(_FORM))
        post = respx.post(_ACTION).respond(302, headers={"location": _MEDIA})
        respx.head(_MEDIA).respond(200)
        async with httpx.AsyncClient() as client:
            [stream] = await KwikResolver(client).resolve(ResolutionRequest(url=_KWIK_URL))

        assert stream.url == _MEDIA
        assert stream.file_name == "Episode.05.mp4"
        assert page.calls.last.request.headers["referer"] == KWIK_REFERER
        assert b'name="_token"' in post.calls.last.request.content
        assert b"tok42" in post.calls.last.request.content

    @respx.mock
    @pytest.mark.asyncio
    async def test_pahe_link_goes_through_redirect(self) -> None:
        respx.get("https://pahe.win/xyz/i").respond(
            302, headers={"location": "https://pahe.win/r?u=https://kwik.cx/f/abc"}
        )
        respx.get(_KWIK_URL).respond(200, html=_packed_page(_FORM))
        respx.post(_ACTION).respond(302, headers={"location": _MEDIA})
        respx.head(_MEDIA).respond(200)
        async with httpx.AsyncClient() as client:
            [stream] = await KwikResolver(client).resolve(
                ResolutionRequest(url="https://pahe.win/xyz")
            )
        assert stream.url == _MEDIA

    @respx.mock
    @pytest.mark.asyncio
    async def test_non_302_answer_is_empty(self) -> None:
        respx.get(_KWIK_URL).respond(200, html=_packed_page(_FORM))
        respx.post(_ACTION).respond(200, html="<html>expired</html>")
        async with httpx.AsyncClient() as client:
            assert await KwikResolver(client).resolve(ResolutionRequest(url=_KWIK_URL)) == []

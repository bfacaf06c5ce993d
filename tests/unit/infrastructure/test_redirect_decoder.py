"""Tests for RedirectDecoderResolver."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from resolvarr.domain.entities import (
    ResolutionRequest,
    StreamDescriptor,
    StructuralParseError,
    UpstreamRejectionError,
)
from resolvarr.infrastructure.http.session import HttpSession
from resolvarr.infrastructure.link_resolvers.redirect_decoder import (
    RedirectDecoderResolver,
    extract_payload,
)
from resolvarr.infrastructure.obfuscation import b64encode, rot13

_PAGE_URL = "https://techyboy4u.com/?id=abc"
_TARGET = "https://hubcloud.dad/drive/xyz"


def _encode(obj: dict) -> str:
    return b64encode(b64encode(rot13(b64encode(json.dumps(obj)))))


def _split_page(payload: str) -> str:
    half = len(payload) // 2
    return (
        "<script>"
        f"s('o','{payload[:half]}',180*1000);"
        f"ck('_wp_http_1','{payload[half:]}',180*1000);"
        "</script>"
    )


class TestExtractPayload:
    def test_fragments_concatenated(self) -> None:
        html = "s('o','QUJD',1); x(); ck('_wp_http_2','REVG',1);"
        assert extract_payload(html) == "QUJDREVG"

    def test_single_literal_fallback(self) -> None:
        assert extract_payload("var x = {'o','YWJj'};") == "YWJj"

    def test_nothing(self) -> None:
        assert extract_payload("<html></html>") == ""


class TestUnwrap:
    @respx.mock
    @pytest.mark.asyncio
    async def test_o_key_decoded(self) -> None:
        respx.get(_PAGE_URL).respond(200, html=_split_page(_encode({"o": b64encode(_TARGET)})))
        async with httpx.AsyncClient() as client:
            target = await RedirectDecoderResolver(client).unwrap(HttpSession(client), _PAGE_URL)
        assert target == _TARGET

    @respx.mock
    @pytest.mark.asyncio
    async def test_blog_url_fallback(self) -> None:
        payload = _encode({"data": "blob", "blog_url": "https://blog.example/go"})
        respx.get(_PAGE_URL).respond(200, html=_split_page(payload))
        fallback = respx.get("https://blog.example/go").respond(200, text=f"  {_TARGET}\n")
        async with httpx.AsyncClient() as client:
            target = await RedirectDecoderResolver(client).unwrap(HttpSession(client), _PAGE_URL)
        assert target == _TARGET
        assert fallback.calls.last.request.url.params["re"] == b64encode("blob")

    @respx.mock
    @pytest.mark.asyncio
    async def test_invalid_link_is_rejection(self) -> None:
        respx.get(_PAGE_URL).respond(200, text="Invalid Link !!")
        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamRejectionError):
                await RedirectDecoderResolver(client).unwrap(HttpSession(client), _PAGE_URL)

    @respx.mock
    @pytest.mark.asyncio
    async def test_garbage_payload_is_structural(self) -> None:
        respx.get(_PAGE_URL).respond(200, html="s('o','AAAA',1);")
        async with httpx.AsyncClient() as client:
            with pytest.raises(StructuralParseError):
                await RedirectDecoderResolver(client).unwrap(HttpSession(client), _PAGE_URL)


class TestRedirectDecoderResolver:
    @respx.mock
    @pytest.mark.asyncio
    async def test_decoded_target_handed_to_registry(self) -> None:
        respx.get(_PAGE_URL).respond(200, html=_split_page(_encode({"o": b64encode(_TARGET)})))
        final = StreamDescriptor(
            name="HubCloud", title="", url="https://cdn.example.com/m.mkv", quality="1080p"
        )
        registry = MagicMock()
        registry.resolve = AsyncMock(return_value=[final])
        async with httpx.AsyncClient() as client:
            resolver = RedirectDecoderResolver(client)
            resolver.attach(registry)
            assert await resolver.resolve(ResolutionRequest(url=_PAGE_URL)) == [final]
        assert registry.resolve.await_args.args[0].url == _TARGET

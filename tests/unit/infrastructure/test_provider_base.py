"""Tests for the shared provider pipeline (ProviderBase) via UHDMovies."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import respx

from resolvarr.domain.entities import MediaRef, RequestConfig, StreamDescriptor
from resolvarr.infrastructure.providers.base import IntermediateLink, filter_streams
from resolvarr.infrastructure.providers.uhdmovies import UHDMoviesProvider

_SEARCH_URL = "https://uhdmovies.email/search/Inception"
_PAGE_URL = "https://uhdmovies.email/download-inception-2010/"

_SEARCH_HIT = f"""\
<html><body>
<article><a href="{_PAGE_URL}">Inception (2010) 1080p BluRay</a></article>
<article><a href="https://uhdmovies.email/download-the-inception-diaries-2019/">The Inception Diaries (2019)</a></article>
</body></html>
"""

_MOVIE_PAGE = """\
<html><body><div class="entry-content">
<p>Inception (2010) 1080p BluRay x264 [2.5 GB]</p>
<p><a href="https://driveleech.net/file/abc">Download Now</a></p>
</div></body></html>
"""


def _provider(http: httpx.AsyncClient, metadata, cache, links) -> UHDMoviesProvider:
    return UHDMoviesProvider(http, metadata=metadata, cache=cache, links=links)


# ---------------------------------------------------------------------------
# filter_streams
# ---------------------------------------------------------------------------


class TestFilterStreams:
    def test_drops_none_zip_and_redirectors(self, make_stream) -> None:
        keep = make_stream(url="https://cdn.example.com/a.mkv")
        result = filter_streams(
            [
                None,
                keep,
                make_stream(url="https://cdn.example.com/pack.zip"),
                make_stream(url="https://hubcloud.dad/drive/x"),
                make_stream(url="https://cdn.example.com/a.mkv", name="Dup"),
            ]
        )
        assert result == [keep]

    def test_sorted_by_quality_then_size(self, make_stream) -> None:
        small_4k = make_stream(url="https://c.example/1", quality="2160p", size="4 GB")
        big_1080 = make_stream(url="https://c.example/2", quality="1080p", size="10 GB")
        big_4k = make_stream(url="https://c.example/3", quality="2160p", size="20 GB")
        assert filter_streams([big_1080, small_4k, big_4k]) == [big_4k, small_4k, big_1080]


class TestIntermediateLink:
    def test_to_request_carries_hints(self) -> None:
        link = IntermediateLink(
            url="https://driveleech.net/file/abc",
            quality="1080p",
            file_name="m.mkv",
            size="2 GB",
            referer="https://site.example/page",
        )
        request = link.to_request()
        assert request.url == link.url
        assert request.referer == "https://site.example/page"
        assert request.hints.quality == "1080p"
        assert request.hints.size == "2 GB"


# ---------------------------------------------------------------------------
# resolve_streams
# ---------------------------------------------------------------------------


class TestResolveStreams:
    @respx.mock
    @pytest.mark.asyncio
    async def test_empty_search_yields_nothing(
        self, movie_ref, mock_metadata, memory_cache, mock_links
    ) -> None:
        respx.get(_SEARCH_URL).respond(200, html="<html><body>No results</body></html>")
        async with httpx.AsyncClient() as client:
            provider = _provider(client, mock_metadata, memory_cache, mock_links)
            streams = await provider.resolve_streams(movie_ref, RequestConfig())

        assert streams == []
        mock_links.resolve.assert_not_awaited()
        assert memory_cache.data == {}

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_page_resolve_and_cache(
        self, movie_ref, mock_metadata, memory_cache, mock_links
    ) -> None:
        search = respx.get(_SEARCH_URL).respond(200, html=_SEARCH_HIT)
        page = respx.get(_PAGE_URL).respond(200, html=_MOVIE_PAGE)
        mock_links.resolve = AsyncMock(
            return_value=[
                StreamDescriptor(
                    name="Driveseed - Resume Cloud",
                    title="Inception.mkv\n2.5 GB",
                    url="https://cdn.example.com/Inception.mkv",
                    quality="1080p",
                    size="2.5 GB",
                )
            ]
        )

        async with httpx.AsyncClient() as client:
            provider = _provider(client, mock_metadata, memory_cache, mock_links)
            [stream] = await provider.resolve_streams(movie_ref, RequestConfig())
            again = await provider.resolve_streams(movie_ref, RequestConfig())

        assert stream.url == "https://cdn.example.com/Inception.mkv"
        assert stream.name.startswith("UHDMovies - ")
        assert stream.behavior_hints.binge_group == "uhdmovies-1080p"
        assert again == [stream]

        request = mock_links.resolve.await_args_list[0].args[0]
        assert request.url == "https://driveleech.net/file/abc"
        assert request.referer == _PAGE_URL
        assert request.hints.quality == "1080p"
        assert request.hints.size == "2.5 GB"

        # Second call is served from the intermediate cache.
        assert search.call_count == 1
        assert page.call_count == 1
        [cached] = memory_cache.data[movie_ref.cache_key("uhdmovies")]
        assert cached["url"] == "https://driveleech.net/file/abc"

    @pytest.mark.asyncio
    async def test_missing_metadata(self, movie_ref, memory_cache, mock_links) -> None:
        metadata = MagicMock()
        metadata.get_metadata = AsyncMock(return_value=None)
        async with httpx.AsyncClient() as client:
            provider = _provider(client, metadata, memory_cache, mock_links)
            assert await provider.resolve_streams(movie_ref, RequestConfig()) == []

    @pytest.mark.asyncio
    async def test_metadata_error_is_swallowed(self, movie_ref, memory_cache, mock_links) -> None:
        metadata = MagicMock()
        metadata.get_metadata = AsyncMock(side_effect=httpx.ConnectError("down"))
        async with httpx.AsyncClient() as client:
            provider = _provider(client, metadata, memory_cache, mock_links)
            assert await provider.resolve_streams(movie_ref, RequestConfig()) == []

    @pytest.mark.asyncio
    async def test_tv_without_episode(self, mock_metadata, memory_cache, mock_links) -> None:
        async with httpx.AsyncClient() as client:
            provider = _provider(client, mock_metadata, memory_cache, mock_links)
            streams = await provider.resolve_streams(
                MediaRef(tmdb_id="1399", media_type="tv", season=1), RequestConfig()
            )
        assert streams == []
        mock_metadata.get_metadata.assert_not_awaited()

    @respx.mock
    @pytest.mark.asyncio
    async def test_search_failure_is_empty(
        self, movie_ref, mock_metadata, memory_cache, mock_links
    ) -> None:
        respx.get(_SEARCH_URL).respond(503)
        async with httpx.AsyncClient() as client:
            provider = _provider(client, mock_metadata, memory_cache, mock_links)
            assert await provider.resolve_streams(movie_ref, RequestConfig()) == []


# ---------------------------------------------------------------------------
# Fan-out isolation
# ---------------------------------------------------------------------------


class TestFanOutIsolation:
    @pytest.mark.parametrize("failure", [RuntimeError("boom"), httpx.ReadTimeout("slow")])
    @pytest.mark.asyncio
    async def test_one_failing_chain_keeps_the_rest(
        self, failure, movie_ref, mock_metadata, memory_cache, mock_links
    ) -> None:
        links = [
            IntermediateLink(url=f"https://driveleech.net/file/{n}", quality="1080p")
            for n in range(1, 5)
        ]
        memory_cache.data[movie_ref.cache_key("uhdmovies")] = [
            {"url": link.url, "quality": link.quality} for link in links
        ]

        def resolve(request, depth=0):
            n = request.url.rsplit("/", 1)[-1]
            if n == "3":
                raise failure
            return [
                StreamDescriptor(
                    name="Driveseed",
                    title=f"{n}.mkv",
                    url=f"https://cdn.example.com/{n}.mkv",
                    quality="1080p",
                )
            ]

        mock_links.resolve = AsyncMock(side_effect=resolve)
        async with httpx.AsyncClient() as client:
            provider = _provider(client, mock_metadata, memory_cache, mock_links)
            streams = await provider.resolve_streams(movie_ref, RequestConfig())

        assert sorted(s.url for s in streams) == [
            "https://cdn.example.com/1.mkv",
            "https://cdn.example.com/2.mkv",
            "https://cdn.example.com/4.mkv",
        ]
        assert mock_links.resolve.await_count == 4

"""Tests for StreamAggregationUseCase and its filters."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from resolvarr.application.use_cases.stream_aggregation import (
    StreamAggregationUseCase,
    dedupe_and_sort,
    filter_by_codecs,
    filter_by_quality,
)
from resolvarr.domain.entities import CodecExclusion, RequestConfig


def _provider(name: str, *, streams=None, error: Exception | None = None) -> MagicMock:
    provider = MagicMock()
    provider.name = name
    provider.resolve_streams = AsyncMock(return_value=streams or [], side_effect=error)
    return provider


class _SlowProvider:
    name = "Slow"

    async def resolve_streams(self, media, config):
        await asyncio.sleep(5)
        return []


def _use_case(*providers, timeout: float = 1.0, min_quality: str | None = None):
    source = MagicMock()
    source.enabled = MagicMock(return_value=list(providers))
    config = SimpleNamespace(provider_timeout_seconds=timeout, min_quality=min_quality)
    return StreamAggregationUseCase(providers=source, config=config), source


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilterByQuality:
    def test_floor(self, make_stream) -> None:
        low = make_stream(url="https://c.example/1", quality="480p")
        mid = make_stream(url="https://c.example/2", quality="720p")
        high = make_stream(url="https://c.example/3", quality="2160p")
        assert filter_by_quality([low, mid, high], "720p") == [mid, high]

    @pytest.mark.parametrize("setting", [None, "", "all", "ALL", "potato"])
    def test_disabled(self, make_stream, setting: str | None) -> None:
        streams = [make_stream(quality="480p")]
        assert filter_by_quality(streams, setting) == streams


class TestFilterByCodecs:
    def test_exclude_dv(self, make_stream) -> None:
        dv = make_stream(url="https://c.example/dv", codecs=("DV", "H.265"))
        plain = make_stream(url="https://c.example/plain")
        assert filter_by_codecs([dv, plain], CodecExclusion(exclude_dv=True)) == [plain]

    def test_exclude_hdr(self, make_stream) -> None:
        hdr = make_stream(url="https://c.example/hdr", codecs=("HDR10+",))
        dv = make_stream(url="https://c.example/dv", codecs=("DV",))
        assert filter_by_codecs([hdr, dv], CodecExclusion(exclude_hdr=True)) == [dv]

    def test_nothing_excluded(self, make_stream) -> None:
        streams = [make_stream(codecs=("DV", "HDR"))]
        assert filter_by_codecs(streams, CodecExclusion()) == streams


class TestDedupeAndSort:
    def test_first_url_wins_and_order(self, make_stream) -> None:
        first = make_stream(url="https://c.example/a", quality="720p", name="First")
        dup = make_stream(url="https://c.example/a", quality="2160p", name="Dup")
        small = make_stream(url="https://c.example/b", quality="1080p", size="1 GB")
        big = make_stream(url="https://c.example/c", quality="1080p", size="8 GB")
        assert dedupe_and_sort([first, small, dup, big]) == [big, small, first]


# ---------------------------------------------------------------------------
# execute
# ---------------------------------------------------------------------------


class TestExecute:
    @pytest.mark.asyncio
    async def test_failing_and_slow_providers_isolated(self, movie_ref, make_stream) -> None:
        good = _provider("Good", streams=[make_stream(url="https://c.example/ok")])
        broken = _provider("Broken", error=RuntimeError("boom"))
        uc, _ = _use_case(good, broken, _SlowProvider(), timeout=0.05)

        result = await uc.execute(movie_ref)

        assert [s.url for s in result] == ["https://c.example/ok"]
        broken.resolve_streams.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_merges_sorts_and_filters(self, movie_ref, make_stream) -> None:
        a = _provider(
            "A",
            streams=[
                make_stream(url="https://c.example/480", quality="480p"),
                make_stream(url="https://c.example/shared", quality="1080p"),
            ],
        )
        b = _provider(
            "B",
            streams=[
                make_stream(url="https://c.example/4k-dv", quality="2160p", codecs=("DV",)),
                make_stream(url="https://c.example/shared", quality="1080p", name="B"),
            ],
        )
        uc, _ = _use_case(a, b)
        config = RequestConfig(min_quality="720p", exclude_codecs=CodecExclusion(exclude_dv=True))

        result = await uc.execute(movie_ref, config)

        assert [s.url for s in result] == ["https://c.example/shared"]
        assert result[0].name == "Test"

    @pytest.mark.asyncio
    async def test_server_min_quality_default(self, movie_ref, make_stream) -> None:
        a = _provider(
            "A",
            streams=[
                make_stream(url="https://c.example/480", quality="480p"),
                make_stream(url="https://c.example/1080", quality="1080p"),
            ],
        )
        uc, _ = _use_case(a, min_quality="1080p")
        assert [s.url for s in await uc.execute(movie_ref)] == ["https://c.example/1080"]

    @pytest.mark.asyncio
    async def test_request_config_reaches_providers(self, tv_ref) -> None:
        a = _provider("A")
        uc, source = _use_case(a)
        config = RequestConfig(providers=("a",), region="UK")

        assert await uc.execute(tv_ref, config) == []

        source.enabled.assert_called_once_with(config)
        a.resolve_streams.assert_awaited_once_with(tv_ref, config)

    @pytest.mark.asyncio
    async def test_no_providers(self, movie_ref) -> None:
        uc, _ = _use_case()
        assert await uc.execute(movie_ref) == []

"""Stream aggregation use case.

MediaRef + RequestConfig -> every enabled provider in parallel
-> quality / codec filters -> dedupe -> sort -> StreamDescriptor list.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from typing import Protocol
from uuid import uuid4

import structlog

from resolvarr.domain.entities import CodecExclusion, MediaRef, RequestConfig, StreamDescriptor
from resolvarr.domain.ports.provider import ProviderPort
from resolvarr.infrastructure.common.parsers import parse_size_to_mb
from resolvarr.infrastructure.common.quality import quality_rank

log = structlog.get_logger(__name__)

_HDR_TAGS = frozenset({"HDR", "HDR10", "HDR10+"})


class _AggregatorConfig(Protocol):
    """Configuration values consumed by StreamAggregationUseCase."""

    provider_timeout_seconds: float
    min_quality: str | None


class _ProviderSource(Protocol):
    def enabled(self, config: RequestConfig | None = None) -> list[ProviderPort]: ...


def filter_by_quality(
    streams: Iterable[StreamDescriptor], min_quality: str | None
) -> list[StreamDescriptor]:
    """Keep streams ranked at or above *min_quality*.

    ``None``, ``"all"`` and unrecognized settings disable the filter.
    """
    streams = list(streams)
    if not min_quality or min_quality.lower() == "all":
        return streams
    floor = quality_rank(min_quality)
    if floor == 0:
        log.warning("min_quality_unrecognized", min_quality=min_quality)
        return streams
    return [s for s in streams if quality_rank(s.quality) >= floor]


def filter_by_codecs(
    streams: Iterable[StreamDescriptor], exclude: CodecExclusion
) -> list[StreamDescriptor]:
    """Drop Dolby Vision and/or HDR streams; streams without codec info stay."""
    kept: list[StreamDescriptor] = []
    for stream in streams:
        if exclude.exclude_dv and "DV" in stream.codecs:
            continue
        if exclude.exclude_hdr and _HDR_TAGS.intersection(stream.codecs):
            continue
        kept.append(stream)
    return kept


def dedupe_and_sort(streams: Iterable[StreamDescriptor]) -> list[StreamDescriptor]:
    """First occurrence per URL wins; best quality, then largest file first."""
    unique: dict[str, StreamDescriptor] = {}
    for stream in streams:
        unique.setdefault(stream.url, stream)
    return sorted(
        unique.values(),
        key=lambda s: (quality_rank(s.quality), parse_size_to_mb(s.size)),
        reverse=True,
    )


class StreamAggregationUseCase:
    """Fan a stream request out to every enabled provider.

    A provider that raises or misses its deadline contributes nothing; the
    remaining providers' streams are still returned.
    """

    def __init__(self, *, providers: _ProviderSource, config: _AggregatorConfig) -> None:
        self._providers = providers
        self._timeout = config.provider_timeout_seconds
        self._default_min_quality = config.min_quality

    async def execute(
        self, media: MediaRef, config: RequestConfig | None = None
    ) -> list[StreamDescriptor]:
        config = config or RequestConfig()
        providers = self._providers.enabled(config)
        structlog.contextvars.bind_contextvars(
            request_id=uuid4().hex[:12],
            tmdb_id=media.tmdb_id,
            media_type=media.media_type,
        )
        try:
            if not providers:
                log.warning("aggregate_no_providers")
                return []
            log.info(
                "aggregate_start",
                season=media.season,
                episode=media.episode,
                providers=[p.name for p in providers],
            )
            t0 = time.perf_counter()
            batches = await asyncio.gather(*(self._run(p, media, config) for p in providers))
            streams = [s for batch in batches for s in batch]

            streams = filter_by_quality(streams, config.min_quality or self._default_min_quality)
            streams = filter_by_codecs(streams, config.exclude_codecs)
            result = dedupe_and_sort(streams)
            log.info(
                "aggregate_done",
                found=sum(len(b) for b in batches),
                returned=len(result),
                duration_ms=round((time.perf_counter() - t0) * 1000),
            )
            return result
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "tmdb_id", "media_type")

    async def _run(
        self, provider: ProviderPort, media: MediaRef, config: RequestConfig
    ) -> Sequence[StreamDescriptor]:
        try:
            return await asyncio.wait_for(
                provider.resolve_streams(media, config), timeout=self._timeout
            )
        except TimeoutError:
            log.warning("provider_deadline_exceeded", provider=provider.name, timeout=self._timeout)
        except Exception:  # noqa: BLE001
            log.warning("provider_crashed", provider=provider.name, exc_info=True)
        return []

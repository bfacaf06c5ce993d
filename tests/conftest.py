"""Shared test fixtures for the Resolvarr test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from resolvarr.domain.entities import MediaMetadata, MediaRef, StreamDescriptor

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_ref() -> MediaRef:
    return MediaRef(tmdb_id="27205", media_type="movie")


@pytest.fixture()
def tv_ref() -> MediaRef:
    return MediaRef(tmdb_id="1399", media_type="tv", season=1, episode=2)


@pytest.fixture()
def movie_meta() -> MediaMetadata:
    return MediaMetadata(
        title="Inception",
        year=2010,
        media_type="movie",
        imdb_id="tt1375666",
        original_language="en",
        origin_countries=("US",),
    )


@pytest.fixture()
def make_stream() -> Callable[..., StreamDescriptor]:
    """Factory for StreamDescriptor with sensible defaults."""

    def _make(
        url: str = "https://cdn.example.com/movie.mkv",
        quality: str = "1080p",
        size: str | None = None,
        name: str = "Test",
        codecs: tuple[str, ...] = (),
    ) -> StreamDescriptor:
        return StreamDescriptor(
            name=name,
            title=url.rsplit("/", 1)[-1],
            url=url,
            quality=quality,
            size=size,
            codecs=codecs,
        )

    return _make


# ---------------------------------------------------------------------------
# Infrastructure fakes
# ---------------------------------------------------------------------------


class MemoryCache:
    """Dict-backed CachePort for tests (TTL ignored)."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self.data

    async def clear(self) -> None:
        self.data.clear()

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> MemoryCache:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None


@pytest.fixture()
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture()
def mock_metadata(movie_meta: MediaMetadata) -> AsyncMock:
    """MetadataPort returning *movie_meta* for every lookup."""
    metadata = AsyncMock()
    metadata.get_metadata = AsyncMock(return_value=movie_meta)
    return metadata


@pytest.fixture()
def mock_links() -> MagicMock:
    """LinkResolverRegistry stand-in that resolves nothing."""
    links = MagicMock()
    links.resolve = AsyncMock(return_value=[])
    links.find = MagicMock(return_value=None)
    links.get = MagicMock(return_value=None)
    return links

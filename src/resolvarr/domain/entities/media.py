"""Domain entities describing what is requested and from where."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

MediaType = Literal["movie", "tv"]


@dataclass(frozen=True)
class MediaRef:
    """A title to resolve streams for (TMDB id plus optional episode)."""

    tmdb_id: str
    media_type: MediaType = "movie"
    season: int | None = None
    episode: int | None = None

    @property
    def is_tv(self) -> bool:
        return self.media_type == "tv"

    def cache_key(self, site: str) -> str:
        return f"{site}:{self.tmdb_id}:{self.media_type}:{self.season}:{self.episode}"


@dataclass(frozen=True)
class CodecExclusion:
    exclude_dv: bool = False
    exclude_hdr: bool = False


@dataclass(frozen=True)
class RequestConfig:
    """Per-request user configuration, passed explicitly down every call."""

    cookies: tuple[str, ...] = ()
    region: str | None = None
    min_quality: str | None = None
    exclude_codecs: CodecExclusion = field(default_factory=CodecExclusion)
    providers: tuple[str, ...] = ()


@dataclass(frozen=True)
class MediaMetadata:
    """Title information returned by the metadata service."""

    title: str
    year: int | None
    media_type: MediaType
    imdb_id: str | None = None
    original_title: str | None = None
    original_language: str | None = None
    origin_countries: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderSite:
    """Static descriptor of an indexing site.

    ``base_url`` is the fallback used when the remote domain registry
    (``registry_key``) is unavailable.
    """

    key: str
    base_url: str
    search_path: str = "/?s={query}"
    result_selector: str = ""
    detail_selectors: tuple[str, ...] = ()
    registry_key: str | None = None

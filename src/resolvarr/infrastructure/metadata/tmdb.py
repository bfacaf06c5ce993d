"""TMDB metadata client: async httpx implementation with caching."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import httpx
import structlog

from resolvarr.domain.entities import MediaMetadata, MediaType
from resolvarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"

_TTL_DETAILS = 86_400  # 24 hours


def _year(date_str: str | None) -> int | None:
    if date_str and len(date_str) >= 4 and date_str[:4].isdigit():
        return int(date_str[:4])
    return None


def metadata_from_details(data: dict[str, Any], media_type: MediaType) -> MediaMetadata | None:
    """Build ``MediaMetadata`` from a ``/movie`` or ``/tv`` detail payload."""
    if media_type == "tv":
        title = data.get("name") or data.get("original_name")
        original = data.get("original_name")
        date_str = data.get("first_air_date")
    else:
        title = data.get("title") or data.get("original_title")
        original = data.get("original_title")
        date_str = data.get("release_date")
    if not title:
        return None

    countries = data.get("origin_country") or [
        c.get("iso_3166_1") for c in data.get("production_countries", []) if c.get("iso_3166_1")
    ]
    imdb_id = data.get("imdb_id") or (data.get("external_ids") or {}).get("imdb_id")
    return MediaMetadata(
        title=title,
        year=_year(date_str),
        media_type=media_type,
        imdb_id=imdb_id or None,
        original_title=original or None,
        original_language=data.get("original_language") or None,
        origin_countries=tuple(countries),
    )


class HttpxTmdbClient:
    """Async TMDB client using httpx + CachePort.

    Implements ``MetadataPort`` from domain.ports.metadata.
    """

    def __init__(
        self,
        *,
        api_key: str,
        http_client: httpx.AsyncClient,
        cache: CachePort,
        base_url: str = _BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def _get(self, path: str, **extra: Any) -> dict[str, Any] | None:
        """GET request with error handling. Returns parsed JSON or None."""
        url = f"{self._base_url}{path}"
        try:
            resp = await self._http.get(
                url,
                params={"api_key": self._api_key, **extra},
                timeout=self._timeout,
                follow_redirects=True,
            )
            if resp.status_code == 401:
                log.error("tmdb_api_key_invalid", status=401)
                return None
            if resp.status_code == 404:
                log.debug("tmdb_resource_not_found", path=path)
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError:
            log.warning("tmdb_http_error", path=path, exc_info=True)
            return None
        except httpx.HTTPError:
            log.warning("tmdb_network_error", path=path, exc_info=True)
            return None
        except ValueError:
            log.warning("tmdb_invalid_json", path=path)
            return None

    async def get_metadata(
        self, tmdb_id: str, media_type: MediaType
    ) -> MediaMetadata | None:
        """Title/year/type for a TMDB id. None when not found or on error."""
        cache_key = f"tmdb:details:{media_type}:{tmdb_id}"
        cached = await self._cache.get(cache_key)
        if isinstance(cached, dict):
            cached["origin_countries"] = tuple(cached.get("origin_countries") or ())
            return MediaMetadata(**cached)

        data = await self._get(f"/{media_type}/{tmdb_id}", append_to_response="external_ids")
        if data is None:
            return None
        meta = metadata_from_details(data, media_type)
        if meta is None:
            log.warning("tmdb_title_missing", tmdb_id=tmdb_id, media_type=media_type)
            return None

        await self._cache.set(cache_key, asdict(meta), ttl=_TTL_DETAILS)
        log.debug("tmdb_metadata_loaded", tmdb_id=tmdb_id, title=meta.title, year=meta.year)
        return meta

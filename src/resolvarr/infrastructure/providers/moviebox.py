"""MovieBox provider (signed mobile API).

Every request carries an ``x-tr-signature`` HMAC-MD5 over the canonical
request plus an ``x-client-token``; see
:mod:`resolvarr.infrastructure.obfuscation.signing`. Search results are
ranked with the weighted title similarity and every relevant subject's
``play-info`` streams are returned as-is: they are already direct CDN
URLs, so nothing here goes through the link resolvers or the cache.

Without a signing key (``providers.moviebox_key``) the provider is a
no-op.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import httpx

from resolvarr.domain.entities import (
    BehaviorHints,
    MediaMetadata,
    MediaRef,
    ProviderSite,
    RequestConfig,
    StreamDescriptor,
)
from resolvarr.domain.ports.cache import CachePort
from resolvarr.domain.ports.metadata import MetadataPort
from resolvarr.infrastructure.common.parsers import format_size
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.link_resolvers import LinkResolverRegistry
from resolvarr.infrastructure.matching.title_matcher import rank_by_similarity
from resolvarr.infrastructure.obfuscation import sign_request

from .base import ProviderBase

API_USER_AGENT = (
    "com.community.mbox.in/50020042 "
    "(Linux; Android 16; sdk_gphone64_x86_64; Cronet/133.0.6876.3)"
)
STREAM_REFERER = "https://api.inmoviebox.com"
MIN_SIMILARITY = 0.7

LANGUAGES = (
    "Hindi", "English", "Tamil", "Telugu", "Malayalam", "Kannada", "Bengali",
    "Punjabi", "Gujarati", "Marathi", "Odia", "Assamese", "Bhojpuri", "Urdu",
    "Nepali", "Spanish", "French", "German", "Japanese", "Korean", "Chinese",
    "Arabic", "Portuguese", "Russian", "Italian", "Dutch", "Thai", "Vietnamese",
    "Indonesian", "Malay", "Filipino", "Turkish", "Polish", "Swedish",
    "Norwegian", "Danish", "Finnish", "Greek", "Hebrew", "Persian",
)

_BRACKET_RE = re.compile(r"\[([^\]]*)\]")


def detect_language(audio_tracks: list[str], fmt: str, subject_title: str) -> str:
    """Audio tracks first, stream format second, ``[...]`` tags in the title last."""
    bracketed = " ".join(_BRACKET_RE.findall(subject_title))
    for haystack in (" ".join(audio_tracks), fmt, bracketed):
        low = haystack.lower()
        for language in LANGUAGES:
            if language.lower() in low:
                return language
    return ""


def normalize_resolutions(stream: dict[str, Any]) -> list[str]:
    value = stream.get("resolutions")
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    single = stream.get("resolution")
    if isinstance(single, list):
        return [str(v) for v in single]
    return [str(single)] if single else []


def stream_quality(stream: dict[str, Any]) -> str:
    """``1080p`` style quality from whichever field the API filled in."""
    candidates = [
        str(stream[field])
        for field in ("quality", "definition", "label", "videoQuality", "profile")
        if stream.get(field)
    ]
    candidates.extend(normalize_resolutions(stream))
    video = stream.get("video") or {}
    width = stream.get("width") or video.get("width")
    height = stream.get("height") or video.get("height")
    if width and height:
        candidates.append(f"{width}x{height}")
    candidates = list(dict.fromkeys(candidates))

    raw = next((q for q in candidates if "p" in q or "x" in q), None)
    raw = raw or (candidates[0] if candidates else "")
    if not raw:
        return "Unknown"
    if "p" in raw:
        return raw
    if re.fullmatch(r"\d{3,4}", raw):
        return f"{raw}p"
    m = re.fullmatch(r"\d+x(\d{3,4})", raw)
    return f"{m.group(1)}p" if m else raw


class MovieBoxProvider(ProviderBase):
    name = "MovieBox"
    site = ProviderSite(
        key="moviebox",
        base_url="https://api.inmoviebox.com/wefeed-mobile-bff",
    )

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        metadata: MetadataPort,
        cache: CachePort,
        links: LinkResolverRegistry,
        domains: DomainRegistry | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(
            http_client, metadata=metadata, cache=cache, links=links, domains=domains
        )
        self._key = key

    async def _api(self, url: str, *, method: str = "GET", body: str = "") -> dict[str, Any]:
        """Signed API call; ``{}`` on any failure."""
        if not self._key:
            return {}
        headers = {
            "User-Agent": API_USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
            "x-client-info": json.dumps({"package_name": "com.community.mbox.in"}),
            "x-client-status": "0",
            **sign_request(self._key, url, method, body),
        }
        resp = await self._safe_fetch(
            url, method=method, context="api", headers=headers, content=body or None
        )
        if resp is None:
            return {}
        data = self._safe_parse_json(resp, context="api")
        return data if isinstance(data, dict) else {}

    async def search(self, keyword: str) -> list[dict[str, Any]]:
        body = json.dumps({"page": 1, "perPage": 10, "keyword": keyword}, separators=(",", ":"))
        data = await self._api(
            f"{self.site.base_url}/subject-api/search/v2", method="POST", body=body
        )
        results = (data.get("data") or {}).get("results") or []
        return [subject for result in results for subject in result.get("subjects") or []]

    async def play_info(
        self, subject_id: str, season: int | None = None, episode: int | None = None
    ) -> list[dict[str, Any]]:
        url = f"{self.site.base_url}/subject-api/play-info?subjectId={subject_id}"
        if season and episode:
            url = f"{url}&se={season}&ep={episode}"
        data = (await self._api(url)).get("data") or {}
        return data.get("streams") or (data.get("playInfo") or {}).get("streams") or []

    async def _streams(
        self, media: MediaRef, meta: MediaMetadata, config: RequestConfig
    ) -> list[StreamDescriptor]:
        if not self._key:
            self._log.debug("moviebox_key_missing")
            return []
        subjects = await self.search(meta.title)
        ranked = [
            subject
            for score, subject in rank_by_similarity(
                meta.title, subjects, key=lambda s: str(s.get("title") or "")
            )
            if score >= MIN_SIMILARITY and subject.get("subjectId")
        ]
        if not ranked:
            self._log.info("provider_search_empty", provider=self.name, title=meta.title)
            return []

        season, episode = (media.season, media.episode) if media.is_tv else (None, None)
        batches = await asyncio.gather(
            *(self.play_info(str(s["subjectId"]), season, episode) for s in ranked)
        )
        return [
            self._descriptor(subject, stream)
            for subject, streams in zip(ranked, batches)
            for stream in streams
            if stream.get("url")
        ]

    def _descriptor(self, subject: dict[str, Any], stream: dict[str, Any]) -> StreamDescriptor:
        quality = stream_quality(stream)
        tracks = [str(t) for t in stream.get("audioTracks") or []]
        fmt = str(stream.get("format") or "")
        subject_title = str(subject.get("title") or "")
        language = detect_language(tracks, fmt, subject_title)

        name = f"MovieBox - {quality}"
        if language:
            name = f"{name} | {language}"
        title = f"{subject_title} - {fmt or 'Stream'} - {quality}"
        if tracks:
            title = f"{title} ({', '.join(tracks)})"
        size = stream.get("size")
        size_text = format_size(int(size)) if str(size or "").isdigit() else None
        return StreamDescriptor(
            name=name,
            title=title,
            url=str(stream["url"]),
            quality=quality,
            size=size_text,
            behavior_hints=BehaviorHints(
                binge_group=f"moviebox-{quality}",
                proxy_headers=(("Referer", STREAM_REFERER),),
            ),
        )

"""Stremio addon API endpoints (manifest, stream).

Every route exists twice: plain, and under a ``/{config}`` prefix where
``config`` is base64url-encoded JSON carrying the per-request settings
(FebBox cookies, region, minimum quality, codec exclusions, providers).
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Optional, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from resolvarr.domain.entities import CodecExclusion, MediaRef, RequestConfig
from resolvarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["stremio"])

_ADDON_ID = "community.resolvarr"
_ADDON_VERSION = "0.1.0"

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
}


class _CodecSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exclude_dv: bool = Field(default=False, alias="excludeDV")
    exclude_hdr: bool = Field(default=False, alias="excludeHDR")


class RequestConfigPayload(BaseModel):
    """JSON shape of the ``{config}`` path segment."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cookie: Optional[str] = None
    cookies: list[str] = Field(default_factory=list)
    region: Optional[str] = None
    min_quality: Optional[str] = Field(default=None, alias="minQuality")
    exclude_codecs: _CodecSettings = Field(default_factory=_CodecSettings, alias="excludeCodecs")
    providers: list[str] = Field(default_factory=list)

    @field_validator("providers", mode="before")
    @classmethod
    def _split_providers(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    def to_request_config(self) -> RequestConfig:
        cookies = [c.strip() for c in self.cookies if c and c.strip()]
        if self.cookie and self.cookie.strip() not in cookies:
            cookies.insert(0, self.cookie.strip())
        return RequestConfig(
            cookies=tuple(cookies),
            region=self.region.upper() if self.region else None,
            min_quality=self.min_quality,
            exclude_codecs=CodecExclusion(
                exclude_dv=self.exclude_codecs.exclude_dv,
                exclude_hdr=self.exclude_codecs.exclude_hdr,
            ),
            providers=tuple(self.providers),
        )


def decode_config(token: str) -> RequestConfig:
    """Base64url JSON -> RequestConfig.

    Raises:
        ValueError: If the token is not valid base64url JSON of the
            expected shape.
    """
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = RequestConfigPayload.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeError, json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"invalid config segment: {exc}") from exc
    return payload.to_request_config()


def parse_media_id(content_type: str, raw_id: str) -> MediaRef | None:
    """Parse a Stremio id into a MediaRef.

    Movies: ``tmdb:12345``. Series: ``tmdb:12345:1:5`` (season 1,
    episode 5). Type ``series`` maps to ``tv``.
    """
    if content_type not in ("movie", "series", "tv"):
        return None
    parts = raw_id.split(":")
    if len(parts) < 2 or parts[0] != "tmdb" or not parts[1].isdigit():
        return None
    if content_type == "movie":
        return MediaRef(tmdb_id=parts[1], media_type="movie")
    if len(parts) != 4:
        return None
    try:
        season, episode = int(parts[2]), int(parts[3])
    except ValueError:
        return None
    return MediaRef(tmdb_id=parts[1], media_type="tv", season=season, episode=episode)


def _build_manifest(configured: bool) -> dict[str, Any]:
    return {
        "id": _ADDON_ID,
        "version": _ADDON_VERSION,
        "name": "Resolvarr",
        "description": "Direct streaming links resolved from multiple indexing sites",
        "types": ["movie", "series"],
        "catalogs": [],
        "resources": ["stream"],
        "idPrefixes": ["tmdb:"],
        "behaviorHints": {
            "configurable": True,
            "configurationRequired": False,
            "configured": configured,
        },
    }


@router.get("/manifest.json")
async def manifest() -> JSONResponse:
    """Serve the addon manifest."""
    return JSONResponse(content=_build_manifest(configured=False), headers=_CORS_HEADERS)


@router.get("/{config}/manifest.json")
async def configured_manifest(config: str) -> JSONResponse:
    try:
        decode_config(config)
    except ValueError:
        return JSONResponse(
            content={"error": "invalid config"}, status_code=400, headers=_CORS_HEADERS
        )
    return JSONResponse(content=_build_manifest(configured=True), headers=_CORS_HEADERS)


@router.get("/stream/{content_type}/{stream_id}.json")
async def stream(request: Request, content_type: str, stream_id: str) -> JSONResponse:
    return await _streams(request, content_type, stream_id, RequestConfig())


@router.get("/{config}/stream/{content_type}/{stream_id}.json")
async def configured_stream(
    request: Request, config: str, content_type: str, stream_id: str
) -> JSONResponse:
    try:
        request_config = decode_config(config)
    except ValueError:
        log.info("stream_config_invalid")
        return JSONResponse(
            content={"error": "invalid config"}, status_code=400, headers=_CORS_HEADERS
        )
    return await _streams(request, content_type, stream_id, request_config)


async def _streams(
    request: Request, content_type: str, stream_id: str, config: RequestConfig
) -> JSONResponse:
    media = parse_media_id(content_type, stream_id)
    if media is None:
        log.info("stream_id_unparseable", content_type=content_type, stream_id=stream_id)
        return JSONResponse(content={"streams": []}, headers=_CORS_HEADERS)

    state = cast(AppState, request.app.state)
    try:
        streams = await state.stream_aggregation_uc.execute(media, config)
    except Exception:  # noqa: BLE001
        log.warning("stream_request_failed", tmdb_id=media.tmdb_id, exc_info=True)
        streams = []
    return JSONResponse(
        content={"streams": [s.to_dict() for s in streams]}, headers=_CORS_HEADERS
    )

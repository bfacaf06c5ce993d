"""Port for the third-party metadata lookup (TMDB)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities import MediaMetadata, MediaType


@runtime_checkable
class MetadataPort(Protocol):
    async def get_metadata(
        self, tmdb_id: str, media_type: MediaType
    ) -> MediaMetadata | None:
        """Title/year/type for a TMDB id. None when not found or on error."""
        ...

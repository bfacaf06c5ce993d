"""Port for provider orchestrators (one per indexing site)."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities import MediaRef, RequestConfig, StreamDescriptor


@runtime_checkable
class ProviderPort(Protocol):
    """Search a site, pick the best match and resolve all its links.

    A site-search or metadata failure yields an empty list, never an
    exception.
    """

    @property
    def name(self) -> str: ...

    async def resolve_streams(
        self, media: MediaRef, config: RequestConfig
    ) -> list[StreamDescriptor]: ...

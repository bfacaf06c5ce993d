"""Port for link resolution chains."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities import ResolutionRequest, StreamDescriptor


@runtime_checkable
class LinkResolverPort(Protocol):
    """Walks an intermediate URL through its hops to terminal descriptors.

    Implementations never raise for ordinary resolution failure; an
    unrecoverable chain yields an empty list.
    """

    @property
    def name(self) -> str: ...

    def handles(self, url: str) -> bool:
        """True if this resolver recognises the host/path of *url*."""
        ...

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        """Terminal descriptors for *request*; *depth* counts registry hand-offs."""
        ...

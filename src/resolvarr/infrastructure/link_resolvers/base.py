"""Shared base class for hop-based link resolvers.

Subclasses set ``name`` and ``_host_markers`` and implement ``_hop``.
Resolvers that fan out into several terminal links (one page, many
buttons) override ``resolve`` and use ``_run`` per branch.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

import httpx
import structlog

from resolvarr.domain.entities import (
    ChainStep,
    ResolutionRequest,
    SessionContext,
    StepKind,
    StreamDescriptor,
)
from resolvarr.infrastructure.http.session import HttpSession

from ._chain import DEFAULT_MAX_HOPS, Hop, compose_title, finalize, run_chain

if TYPE_CHECKING:
    from .registry import LinkResolverRegistry

log = structlog.get_logger(__name__)


class ChainResolver:
    """Base for resolvers expressed as a sequence of hops."""

    name: str = ""
    _host_markers: tuple[str, ...] = ()
    _max_hops: int = DEFAULT_MAX_HOPS

    def __init__(self, http_client: httpx.AsyncClient, *, validate: bool = False) -> None:
        self._http = http_client
        self._validate = validate
        self._registry: LinkResolverRegistry | None = None

    def attach(self, registry: LinkResolverRegistry) -> None:
        """Give the resolver a registry to hand foreign URLs to."""
        self._registry = registry

    def handles(self, url: str) -> bool:
        low = url.lower()
        return any(marker in low for marker in self._host_markers)

    # ------------------------------------------------------------------
    # Chain plumbing
    # ------------------------------------------------------------------

    def _open_session(
        self, request: ResolutionRequest
    ) -> tuple[HttpSession, ResolutionRequest]:
        """Session bound to the request's context (a fresh one if absent)."""
        context = request.session if request.session is not None else SessionContext()
        return HttpSession(self._http, context), replace(request, session=context)

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        session, request = self._open_session(request)
        return await self._run(session, request, depth=depth)

    async def _run(
        self,
        session: HttpSession,
        request: ResolutionRequest,
        *,
        depth: int,
        hop: Hop | None = None,
        chain: str | None = None,
        max_hops: int | None = None,
        accepts: Callable[[str], bool] | None = None,
    ) -> list[StreamDescriptor]:
        """Run one chain branch; URLs rejected by *accepts* (default
        ``handles``) are handed to the registry."""
        step = await run_chain(
            hop or (lambda req: self._hop(session, req)),
            request,
            chain=chain or self.name,
            max_hops=max_hops or self._max_hops,
            accepts=accepts or self.handles,
        )
        return await self._complete(session, step, depth=depth)

    async def _complete(
        self, session: HttpSession, step: ChainStep, *, depth: int
    ) -> list[StreamDescriptor]:
        if step.kind in (StepKind.REDIRECT, StepKind.FORM_POST) and step.next_request:
            return await self._hand_off(step.next_request, depth=depth)
        descriptor = await finalize(session, step, validate=self._validate)
        return [descriptor] if descriptor is not None else []

    async def _hand_off(
        self, request: ResolutionRequest, *, depth: int
    ) -> list[StreamDescriptor]:
        if self._registry is None:
            log.info("chain_hand_off_unrouted", chain=self.name, url=request.url)
            return []
        return await self._registry.resolve(request, depth=depth + 1)

    async def _hop(self, session: HttpSession, request: ResolutionRequest) -> ChainStep:
        raise NotImplementedError(f"{type(self).__name__}._hop() not implemented")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _terminal(
        self,
        request: ResolutionRequest,
        url: str,
        *,
        file_name: str | None = None,
        quality: str | None = None,
        size: str | None = None,
        label: str | None = None,
    ) -> ChainStep:
        """TERMINAL step; missing details fall back to the request hints."""
        hints = request.hints
        file_name = file_name or hints.file_name
        size = size or hints.size
        return ChainStep.terminal(
            StreamDescriptor(
                name=label or self.name,
                title=compose_title(file_name, size),
                url=url,
                quality=quality or hints.quality or "Unknown",
                size=size,
                file_name=file_name,
            )
        )

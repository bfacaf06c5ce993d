"""Registry that dispatches intermediate URLs to per-host chain resolvers."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlsplit

import httpx
import structlog

from resolvarr.domain.entities import ResolutionRequest, StreamDescriptor
from resolvarr.domain.ports.link_resolver import LinkResolverPort
from resolvarr.infrastructure.domain_registry import DomainRegistry

from ._chain import compose_title, is_redirector_url
from .driveseed import DriveseedResolver
from .gdflix import GDFlixResolver
from .hblinks import HBLinksResolver
from .hubcdn import HubCdnResolver
from .hubcloud import HubCloudResolver
from .hubdrive import HubDriveResolver
from .kwik import KwikResolver
from .modrefer import ModReferResolver
from .pixeldrain import PixeldrainResolver
from .redirect_decoder import RedirectDecoderResolver
from .sid import SidBypassResolver
from .videoseed import VideoSeedResolver
from .workerseed import WorkerSeedResolver

log = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 4

# Hosts that only ever lead to dead ends.
_SKIPPED_HOSTS = ("linkrit",)


class LinkResolverRegistry:
    """Dispatches a URL to the first registered resolver that handles it.

    Resolvers hand URLs they do not own back here, so a single request can
    cross several resolvers; ``max_depth`` bounds that recursion. URLs no
    resolver claims pass through as-is unless they are known redirectors.
    Every returned descriptor satisfies the terminal-URL invariant.
    """

    def __init__(
        self,
        resolvers: Iterable[LinkResolverPort] | None = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._resolvers: list[LinkResolverPort] = []
        self._max_depth = max_depth
        for resolver in resolvers or []:
            self.register(resolver)

    def register(self, resolver: LinkResolverPort) -> None:
        """Append a resolver; earlier registrations win on overlap.

        Resolvers exposing ``attach`` get a back-reference so they can hand
        foreign URLs on.
        """
        self._resolvers.append(resolver)
        attach = getattr(resolver, "attach", None)
        if attach is not None:
            attach(self)
        log.debug("link_resolver_registered", resolver=resolver.name)

    @property
    def resolver_names(self) -> list[str]:
        return [r.name for r in self._resolvers]

    def find(self, url: str) -> LinkResolverPort | None:
        for resolver in self._resolvers:
            if resolver.handles(url):
                return resolver
        return None

    def get(self, name: str) -> LinkResolverPort | None:
        """Registered resolver by ``name`` (e.g. for a provider's own pre-steps)."""
        for resolver in self._resolvers:
            if resolver.name == name:
                return resolver
        return None

    async def resolve(
        self, request: ResolutionRequest, *, depth: int = 0
    ) -> list[StreamDescriptor]:
        """Terminal descriptors for *request*. Never raises."""
        if depth > self._max_depth:
            log.info("link_resolve_depth_exceeded", url=request.url, depth=depth)
            return []

        resolver = self.find(request.url)
        if resolver is None:
            return self._pass_through(request)

        try:
            results = await resolver.resolve(request, depth=depth)
        except httpx.HTTPError as exc:
            log.warning(
                "link_resolve_http_error",
                resolver=resolver.name,
                url=request.url,
                error=str(exc),
            )
            return []
        except Exception:  # noqa: BLE001
            log.warning(
                "link_resolve_error", resolver=resolver.name, url=request.url, exc_info=True
            )
            return []

        terminal = [d for d in results if not is_redirector_url(d.url)]
        if len(terminal) != len(results):
            log.info(
                "link_resolve_redirectors_dropped",
                resolver=resolver.name,
                dropped=len(results) - len(terminal),
            )
        log.debug(
            "link_resolve_done", resolver=resolver.name, url=request.url, streams=len(terminal)
        )
        return terminal

    def _pass_through(self, request: ResolutionRequest) -> list[StreamDescriptor]:
        host = (urlsplit(request.url).hostname or "").lower()
        if not host or is_redirector_url(request.url):
            log.info("link_resolve_unhandled", url=request.url)
            return []
        if any(skipped in host for skipped in _SKIPPED_HOSTS):
            return []
        hints = request.hints
        return [
            StreamDescriptor(
                name=host.removeprefix("www."),
                title=compose_title(hints.file_name, hints.size),
                url=request.url,
                quality=hints.quality or "Unknown",
                size=hints.size,
                file_name=hints.file_name,
            )
        ]


def build_default_registry(
    http_client: httpx.AsyncClient,
    *,
    domains: DomainRegistry | None = None,
    validate: bool = False,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> LinkResolverRegistry:
    """Registry with every built-in resolver, redirect decoder last."""
    return LinkResolverRegistry(
        [
            SidBypassResolver(http_client, validate=validate),
            DriveseedResolver(http_client, validate=validate),
            ModReferResolver(http_client, validate=validate),
            HubCloudResolver(http_client, validate=validate),
            HubDriveResolver(http_client, validate=validate),
            HubCdnResolver(http_client, validate=validate),
            HBLinksResolver(http_client, validate=validate),
            GDFlixResolver(http_client, validate=validate, domains=domains),
            WorkerSeedResolver(http_client, validate=validate),
            VideoSeedResolver(http_client, validate=validate),
            PixeldrainResolver(http_client, validate=validate),
            KwikResolver(http_client, validate=validate),
            RedirectDecoderResolver(http_client, validate=validate),
        ],
        max_depth=max_depth,
    )

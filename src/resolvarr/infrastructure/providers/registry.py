"""Name -> provider lookup plus the set of providers enabled for a request."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import httpx
import structlog

from resolvarr.domain.entities import RequestConfig
from resolvarr.domain.ports.cache import CachePort
from resolvarr.domain.ports.metadata import MetadataPort
from resolvarr.domain.ports.provider import ProviderPort
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.link_resolvers import LinkResolverRegistry

from .animepahe import AnimePaheProvider
from .dramadrip import DramaDripProvider
from .fourkhdhub import FourKHDHubProvider
from .hdhub4u import HDHub4uProvider
from .moviebox import MovieBoxProvider
from .moviesdrive import MoviesDriveProvider
from .moviesmod import MoviesModProvider
from .showbox import DEFAULT_REGION, ShowBoxProvider
from .topmovies import TopMoviesProvider
from .uhdmovies import UHDMoviesProvider

log = structlog.get_logger(__name__)


def _norm(name: str) -> str:
    return name.strip().lower()


class ProviderRegistry:
    """Providers by name; lookups are case-insensitive.

    A provider is reachable under its display name (``"UHDMovies"``) and its
    site key (``"uhdmovies"``); both normalize to the same entry for these
    sites.
    """

    def __init__(
        self,
        providers: Iterable[ProviderPort] | None = None,
        *,
        enabled: Sequence[str] | None = None,
    ) -> None:
        self._providers: dict[str, ProviderPort] = {}
        self._enabled = {_norm(n) for n in enabled} if enabled is not None else None
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ProviderPort) -> None:
        key = _norm(provider.name)
        if key in self._providers:
            raise ValueError(f"Duplicate provider: {provider.name!r}")
        self._providers[key] = provider
        log.debug("provider_registered", provider=provider.name)

    def names(self) -> list[str]:
        return [p.name for p in self._providers.values()]

    def get(self, name: str) -> ProviderPort:
        """Provider by name.

        Raises:
            KeyError: If no provider is registered under *name*.
        """
        try:
            return self._providers[_norm(name)]
        except KeyError:
            raise KeyError(f"Unknown provider: {name!r}") from None

    def enabled(self, config: RequestConfig | None = None) -> list[ProviderPort]:
        """Providers to run for a request, in registration order.

        The server-wide ``providers.enabled`` list is applied first; a
        non-empty ``RequestConfig.providers`` narrows it further. Unknown
        names are ignored.
        """
        selected = [
            p
            for key, p in self._providers.items()
            if self._enabled is None or key in self._enabled
        ]
        requested = {_norm(n) for n in config.providers} if config is not None else set()
        if requested:
            selected = [p for p in selected if _norm(p.name) in requested]
        return selected


def build_default_providers(
    http_client: httpx.AsyncClient,
    *,
    metadata: MetadataPort,
    cache: CachePort,
    links: LinkResolverRegistry,
    domains: DomainRegistry | None = None,
    moviebox_key: str | None = None,
    default_region: str = DEFAULT_REGION,
    enabled: Sequence[str] | None = None,
    anime_http_client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Registry with every built-in site.

    *anime_http_client* (a client that also retries network errors) is
    used for AnimePahe when given.
    """
    shared = {"metadata": metadata, "cache": cache, "links": links, "domains": domains}
    return ProviderRegistry(
        [
            UHDMoviesProvider(http_client, **shared),
            MoviesModProvider(http_client, **shared),
            DramaDripProvider(http_client, **shared),
            TopMoviesProvider(http_client, **shared),
            FourKHDHubProvider(http_client, **shared),
            MovieBoxProvider(http_client, key=moviebox_key, **shared),
            MoviesDriveProvider(http_client, **shared),
            HDHub4uProvider(http_client, **shared),
            AnimePaheProvider(anime_http_client or http_client, **shared),
            ShowBoxProvider(http_client, default_region=default_region, **shared),
        ],
        enabled=enabled,
    )

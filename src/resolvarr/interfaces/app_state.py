"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from resolvarr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from resolvarr.application.use_cases import StreamAggregationUseCase
    from resolvarr.domain.ports import CachePort, MetadataPort
    from resolvarr.infrastructure.domain_registry import DomainRegistry
    from resolvarr.infrastructure.link_resolvers import LinkResolverRegistry
    from resolvarr.infrastructure.providers import ProviderRegistry


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    anime_http_client: httpx.AsyncClient
    domains: DomainRegistry
    metadata: MetadataPort

    # Resolution
    link_resolvers: LinkResolverRegistry
    providers: ProviderRegistry

    # Application Services
    stream_aggregation_uc: StreamAggregationUseCase

"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import structlog
from fastapi import FastAPI

from resolvarr.application.use_cases import StreamAggregationUseCase
from resolvarr.infrastructure.cache.cache_factory import create_cache
from resolvarr.infrastructure.domain_registry import DomainRegistry
from resolvarr.infrastructure.http.session import build_http_client
from resolvarr.infrastructure.link_resolvers import build_default_registry
from resolvarr.infrastructure.metadata.tmdb import HttpxTmdbClient
from resolvarr.infrastructure.providers import build_default_providers
from resolvarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Cache (required by TMDB and providers)
        2. HTTP client
        3. Domain registry, TMDB client
        4. Link resolver registry
        5. Provider registry
        6. Aggregation use case
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache (must be first - other components depend on it)
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        redis_url=config.cache.redis_url,
        ttl_seconds=config.cache.ttl_seconds,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client with per-domain rate limiting + 429/503 retry
    state.http_client = build_http_client(
        timeout=config.http.timeout_seconds,
        user_agent=config.http.user_agent,
        proxy=config.http.proxy,
        rate_limit_rps=config.http.rate_limit_rps,
        max_retries=config.http.max_retries,
        backoff_base=config.http.backoff_base,
    )
    log.info("http_client_initialized", proxy=bool(config.http.proxy))
    # AnimePahe API drops connections; it gets network-error retries (1s/2s/4s).
    state.anime_http_client = build_http_client(
        timeout=config.http.timeout_seconds,
        user_agent=config.http.user_agent,
        proxy=config.http.proxy,
        rate_limit_rps=config.http.rate_limit_rps,
        max_retries=3,
        backoff_base=1.0,
        retry_network_errors=True,
    )

    # 3) Domain registry + TMDB
    state.domains = DomainRegistry(state.http_client, sources=config.providers.domain_sources)
    if not config.tmdb.api_key:
        log.warning("tmdb_api_key_missing", hint="every provider will return no streams")
    state.metadata = HttpxTmdbClient(
        api_key=config.tmdb.api_key or "",
        http_client=state.http_client,
        cache=state.cache,
    )

    # 4) Link resolvers (redirect chains)
    state.link_resolvers = build_default_registry(
        state.http_client,
        domains=state.domains,
        validate=config.http.validate_links,
        max_depth=config.providers.max_link_depth,
    )
    log.info("link_resolvers_initialized", resolvers=state.link_resolvers.resolver_names)

    # 5) Providers
    state.providers = build_default_providers(
        state.http_client,
        metadata=state.metadata,
        cache=state.cache,
        links=state.link_resolvers,
        domains=state.domains,
        moviebox_key=config.providers.moviebox_key,
        default_region=config.providers.default_region,
        enabled=config.providers.enabled,
        anime_http_client=state.anime_http_client,
    )
    log.info(
        "providers_initialized",
        providers=[p.name for p in state.providers.enabled()],
    )

    # 6) Use case
    state.stream_aggregation_uc = StreamAggregationUseCase(
        providers=state.providers,
        config=config.aggregator,
    )

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.anime_http_client.aclose()
        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")

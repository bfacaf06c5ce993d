"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from resolvarr.infrastructure.config import AppConfig
from resolvarr.interfaces.app_state import AppState
from resolvarr.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration only, no resource initialization.

    Resources (HTTP client, cache, providers) are created in lifespan().
    """
    app = FastAPI(
        title="Resolvarr",
        description="Streaming link aggregator with multi-hop redirect resolution",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    async def healthz() -> dict[str, str | list[str]]:
        """Liveness probe; returns 200 as long as the process is running."""
        providers = getattr(app.state, "providers", None)
        return {
            "status": "ok",
            "providers": [p.name for p in providers.enabled()] if providers else [],
        }

    from resolvarr.interfaces.api.router import router as stremio_router

    app.include_router(stremio_router)

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            # The path may embed user cookies inside the config segment.
            log.info(
                "http_request",
                method=request.method,
                route=getattr(request.scope.get("route"), "path", None),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app

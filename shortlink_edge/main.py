"""FastAPI application entry point for the short-link edge service.

This module builds the FastAPI application: service container, redirect
interceptor, middleware, routes, and lifecycle hooks.

Application Lifecycle Diagram
===========================
::
    ┌──────────────┐
    │ create_app() │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ EdgeServices │
    │ (cache, http │
    │ client, log) │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Interceptor  │
    │ middleware + │
    │ CORS         │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Include      │
    │ routes       │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ close client │
    └──────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    SHORT_LINK_API_URL=https://api.example.com \
        uvicorn shortlink_edge.main:app --host 0.0.0.0 --port 8000

**Step 2 — Follow a short link**::
    curl -i http://localhost:8000/abc123

**Step 3 — Build an isolated app (tests, embedding)**::
    app = create_app(Settings(SHORT_LINK_API_URL="https://api.example.com"))

Key Behaviours
===============
- Services are built eagerly in create_app(), so the app works even when the
  ASGI server skips lifespan events.
- Each create_app() call owns its own cache; instances never share state.
- Prometheus metrics are exposed at /metrics when ENABLE_METRICS is set.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortlink_edge.cache import TTLCache
from shortlink_edge.config import Settings, get_settings
from shortlink_edge.dependencies import EdgeServices
from shortlink_edge.errors import register_error_handlers
from shortlink_edge.router import ShortLinkRouter
from shortlink_edge.routes import build_router


def create_app(
    settings: Settings | None = None,
    *,
    cache: TTLCache | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    Args:
        settings: Configuration; the cached environment settings by default.
        cache: Pre-built link cache, mainly for tests.
        transport: httpx transport for the upstream client, mainly for tests.
    """
    if settings is None:
        settings = get_settings()

    services = EdgeServices(settings, cache=cache, transport=transport)
    interceptor = ShortLinkRouter(services)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        await services.cleanup()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Edge redirector for short links",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.interceptor = interceptor

    @app.middleware("http")
    async def intercept_short_links(request: Request, call_next):
        return await interceptor.handle(request, call_next)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.ENABLE_METRICS:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_respect_env_var=False,
        ).instrument(app).expose(app)

    register_error_handlers(app)
    app.include_router(build_router(settings))
    return app


app = create_app()

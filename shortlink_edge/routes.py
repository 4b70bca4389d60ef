"""FastAPI route definitions for the reserved (never intercepted) paths.

API Endpoint Overview
=====================
::
    GET  /
        └─ service index (200)

    GET  /health
        └─ HealthResponse (200)

    GET  /link-not-found?id=<short id>
        └─ HTML diagnostic page (404)

    GET  /error?code=<status>
        └─ HTML diagnostic page (502)

    POST /api/short-links
        ├─ ShortLinkCreate (request body)
        └─ ShortLinkCreated (201) or 422/500/502/504

Key Behaviours
===============
- Diagnostic pages show the attempted id or the numeric status only; upstream
  error bodies are never echoed.
- Diagnostic paths follow NOT_FOUND_PATH and ERROR_PATH, so the routes are
  registered by build_router() once settings are known.
- Creation is proxied to the external short-link service; this service does
  not store links itself.
"""

import html

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from shortlink_edge.config import Settings
from shortlink_edge.dependencies import EdgeServices, RequestContext, get_request_context, get_services
from shortlink_edge.enums import HealthStatus, ResolveErrorKind
from shortlink_edge.errors import UpstreamTimeoutError, UpstreamUnavailableError
from shortlink_edge.resolver import ResolveFailure
from shortlink_edge.schemas import HealthResponse, ShortLinkCreate, ShortLinkCreated

__all__ = ["build_router"]

_PAGE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
<h1>{title}</h1>
<p>{message}</p>
<p><a href="/">Back to home</a></p>
</body>
</html>
"""


def _render_page(title: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(title=html.escape(title), message=html.escape(message)),
        status_code=status_code,
    )


def build_router(settings: Settings) -> APIRouter:
    router = APIRouter()

    @router.get("/", tags=["meta"])
    async def index(services: EdgeServices = Depends(get_services)) -> dict[str, str]:
        return {"name": services.settings.APP_NAME, "environment": services.settings.APP_ENV}

    @router.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
        services = ctx.services
        upstream = HealthStatus.HEALTHY if services.client is not None else HealthStatus.UNHEALTHY
        if upstream is HealthStatus.UNHEALTHY:
            ctx.logger.warning("Health check: short-link service URL not configured")
        return HealthResponse(
            status=upstream,
            upstream=upstream,
            cache_entries=len(services.cache),
        )

    @router.get(settings.NOT_FOUND_PATH, response_class=HTMLResponse, tags=["diagnostics"])
    async def link_not_found(short_id: str = Query("", alias="id")) -> HTMLResponse:
        message = (
            f"No link exists for '{short_id}'." if short_id else "No link exists for this address."
        )
        return _render_page("Link not found", message, 404)

    @router.get(settings.ERROR_PATH, response_class=HTMLResponse, tags=["diagnostics"])
    async def link_error(code: int | None = Query(None)) -> HTMLResponse:
        message = "The link service could not complete the request"
        message += f" (code {code})." if code is not None else "."
        return _render_page("Something went wrong", message, 502)

    @router.post(
        "/api/short-links",
        response_model=ShortLinkCreated,
        status_code=201,
        tags=["links"],
    )
    async def create_short_link(
        payload: ShortLinkCreate,
        request: Request,
        ctx: RequestContext = Depends(get_request_context),
    ) -> ShortLinkCreated:
        client = ctx.services.require_client()
        ctx.logger.info(
            f"Short link requested for: {payload.long_url}",
            extra={"operation": "create_short_link", "target_url": payload.long_url},
        )
        result = await client.create(
            payload.long_url,
            timeout=ctx.settings.UPSTREAM_TIMEOUT_SECONDS,
            headers=ctx.get_context_headers(),
        )
        if isinstance(result, ResolveFailure):
            ctx.logger.warning(
                f"Short link creation failed: {result.kind}",
                extra={"operation": "create_short_link", "duration_ms": ctx.get_duration()},
            )
            if result.kind is ResolveErrorKind.TIMEOUT:
                raise UpstreamTimeoutError("Short-link service timed out")
            raise UpstreamUnavailableError("Short-link service could not create the link")

        base = ctx.settings.BASE_URL or str(request.base_url).rstrip("/")
        return ShortLinkCreated(short_id=result.short_id, short_url=f"{base}/{result.short_id}")

    return router

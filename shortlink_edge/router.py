"""Request interceptor that turns short-link paths into redirects.

Every inbound request passes through ShortLinkRouter.handle() before FastAPI
routing. Reserved paths are forwarded untouched; everything else is treated
as a short id, whatever the HTTP method.

State Machine — one request
===========================
::
    ┌─────────────┐   reserved   ┌──────────────┐
    │   Filter    │─────────────▶│ PASS_THROUGH │
    └──────┬──────┘              └──────────────┘
           ▼
    ┌─────────────┐   no base URL   ┌──────────────────┐
    │ Config check│────────────────▶│ 500 (fatal only) │
    └──────┬──────┘                 └──────────────────┘
           ▼
    ┌─────────────┐   empty / short / has "/"   ┌───────────┐
    │ Extract &   │────────────────────────────▶│ NOT_FOUND │
    │ validate id │                             └───────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐   hit   ┌──────────────────┐
    │ Cache get   │────────▶│ REDIRECT(url)    │
    └──────┬──────┘         └──────────────────┘
           ▼ miss
    ┌─────────────┐
    │ Resolve     │── not found / malformed ──▶ NOT_FOUND
    │ (timeout)   │── timeout ────────────────▶ UPSTREAM_ERROR(408)
    │             │── failure(code) ──────────▶ UPSTREAM_ERROR(code)
    └──────┬──────┘
           ▼ ok
    ┌─────────────┐
    │ Cache put   │──────────────────────────▶ REDIRECT(url)
    └─────────────┘

Dispatch
========
- REDIRECT: REDIRECT_STATUS_CODE (301 by default) with a Cache-Control
  max-age no longer than the entry's remaining cache lifetime.
- NOT_FOUND: 302 to ``{NOT_FOUND_PATH}?id=<short id>``.
- UPSTREAM_ERROR: 302 to ``{ERROR_PATH}?code=<status>``.
- PASS_THROUGH: handed to the rest of the application.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import RedirectResponse, Response
from prometheus_client import Counter

from shortlink_edge.dependencies import EdgeServices, RequestContext, build_request_context
from shortlink_edge.enums import CacheStatus, OutcomeKind, ResolveErrorKind
from shortlink_edge.errors import ConfigurationMissingError, configuration_missing_response
from shortlink_edge.resolver import ResolvedLink, ResolveFailure, ShortLinkClient

__all__ = ["DIAGNOSTIC_REDIRECT_STATUS", "RedirectOutcome", "ShortLinkRouter"]

DIAGNOSTIC_REDIRECT_STATUS = 302
INTERNAL_ERROR = 500

REDIRECT_OUTCOMES_TOTAL = Counter(
    "shortlink_edge_redirect_outcomes_total",
    "Terminal routing outcomes for inbound requests",
    ["outcome"],
)
CACHE_LOOKUPS_TOTAL = Counter(
    "shortlink_edge_cache_lookups_total",
    "Link cache lookups by result",
    ["cache"],
)


@dataclass(frozen=True, slots=True)
class RedirectOutcome:
    """Result of routing one request. Never stored."""

    kind: OutcomeKind
    short_id: str | None = None
    target: str | None = None
    status_code: int | None = None
    max_age: int | None = None

    @classmethod
    def pass_through(cls) -> "RedirectOutcome":
        return cls(OutcomeKind.PASS_THROUGH)

    @classmethod
    def redirect(cls, short_id: str, target: str, status_code: int, max_age: int) -> "RedirectOutcome":
        return cls(OutcomeKind.REDIRECT, short_id, target, status_code, max_age)

    @classmethod
    def not_found(cls, short_id: str) -> "RedirectOutcome":
        return cls(OutcomeKind.NOT_FOUND, short_id)

    @classmethod
    def upstream_error(cls, short_id: str, code: int) -> "RedirectOutcome":
        return cls(OutcomeKind.UPSTREAM_ERROR, short_id, status_code=code)


class ShortLinkRouter:
    """Routes inbound paths to redirects using the cache and the upstream client.

    Args:
        services: The application's service container. The router keeps no
            state of its own apart from in-flight lookups when coalescing is on.
    """

    def __init__(self, services: EdgeServices) -> None:
        self._services = services
        self._settings = services.settings
        self._cache = services.cache
        self._reserved = services.settings.reserved_prefixes
        self._inflight: dict[str, asyncio.Future] = {}

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    def is_reserved(self, path: str) -> bool:
        if path in ("", "/"):
            return True
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self._reserved)

    def is_valid_short_id(self, short_id: str) -> bool:
        return len(short_id) >= self._settings.SHORT_ID_MIN_LENGTH and "/" not in short_id

    async def route(self, path: str, ctx: RequestContext) -> RedirectOutcome:
        """Run the routing state machine for ``path``.

        Raises:
            ConfigurationMissingError: No upstream base URL is configured.
        """
        if self.is_reserved(path):
            return RedirectOutcome.pass_through()

        client = self._services.require_client()

        short_id = path[1:] if path.startswith("/") else path
        if not self.is_valid_short_id(short_id):
            ctx.logger.info(f"Rejected malformed short id: {short_id!r}")
            return RedirectOutcome.not_found(short_id)

        entry = self._cache.get(short_id)
        if entry is not None:
            CACHE_LOOKUPS_TOTAL.labels(cache=CacheStatus.HIT).inc()
            return RedirectOutcome.redirect(
                short_id,
                entry.long_url,
                self._settings.REDIRECT_STATUS_CODE,
                int(entry.remaining(self._cache.now())),
            )
        CACHE_LOOKUPS_TOTAL.labels(cache=CacheStatus.MISS).inc()

        result = await self._resolve_upstream(client, short_id, ctx)
        if isinstance(result, ResolvedLink):
            self._cache.put(short_id, result.long_url, self._settings.CACHE_TTL_SECONDS)
            return RedirectOutcome.redirect(
                short_id,
                result.long_url,
                self._settings.REDIRECT_STATUS_CODE,
                self._settings.CACHE_TTL_SECONDS,
            )
        return self._failure_outcome(short_id, result)

    def dispatch(self, outcome: RedirectOutcome, request: Request) -> Response:
        """Build the HTTP response for a terminal, non-pass-through outcome."""
        if outcome.kind is OutcomeKind.REDIRECT:
            return RedirectResponse(
                outcome.target,
                status_code=outcome.status_code,
                headers={"Cache-Control": f"public, max-age={outcome.max_age}"},
            )
        if outcome.kind is OutcomeKind.NOT_FOUND:
            return RedirectResponse(
                self._diagnostic_url(request, self._settings.NOT_FOUND_PATH, id=outcome.short_id or ""),
                status_code=DIAGNOSTIC_REDIRECT_STATUS,
            )
        if outcome.kind is OutcomeKind.UPSTREAM_ERROR:
            return RedirectResponse(
                self._diagnostic_url(request, self._settings.ERROR_PATH, code=outcome.status_code),
                status_code=DIAGNOSTIC_REDIRECT_STATUS,
            )
        raise ValueError(f"Outcome {outcome.kind} has no redirect response")

    async def handle(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """HTTP middleware entry point."""
        ctx = build_request_context(request)
        path = request.url.path
        try:
            outcome = await self.route(path, ctx)
        except ConfigurationMissingError as exc:
            ctx.logger.error(f"Cannot resolve {path}: {exc}")
            return configuration_missing_response()
        except Exception:
            ctx.logger.exception(f"Unexpected error while routing {path}")
            outcome = RedirectOutcome.upstream_error(path.lstrip("/"), INTERNAL_ERROR)

        REDIRECT_OUTCOMES_TOTAL.labels(outcome=outcome.kind).inc()
        if outcome.kind is OutcomeKind.PASS_THROUGH:
            return await call_next(request)

        response = self.dispatch(outcome, request)
        ctx.logger.info(
            f"{outcome.kind} for {outcome.short_id!r} -> {response.headers.get('location')}",
            extra={
                "operation": "redirect",
                "short_id": outcome.short_id,
                "outcome": outcome.kind.value,
                "duration_ms": ctx.get_duration(),
            },
        )
        return response

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _resolve_upstream(
        self, client: ShortLinkClient, short_id: str, ctx: RequestContext
    ) -> ResolvedLink | ResolveFailure:
        timeout = self._settings.UPSTREAM_TIMEOUT_SECONDS
        headers = ctx.get_context_headers()
        if not self._settings.COALESCE_UPSTREAM_LOOKUPS:
            return await client.resolve(short_id, timeout=timeout, headers=headers)

        task = self._inflight.get(short_id)
        if task is None:
            task = asyncio.ensure_future(client.resolve(short_id, timeout=timeout, headers=headers))
            self._inflight[short_id] = task
            task.add_done_callback(lambda done: self._forget_inflight(short_id, done))
        else:
            ctx.logger.debug(f"Joining in-flight lookup for {short_id}")
        # cancelling one waiter leaves the shared lookup running
        return await asyncio.shield(task)

    def _forget_inflight(self, short_id: str, task: asyncio.Future) -> None:
        if self._inflight.get(short_id) is task:
            del self._inflight[short_id]

    @staticmethod
    def _failure_outcome(short_id: str, failure: ResolveFailure) -> RedirectOutcome:
        if failure.kind in (ResolveErrorKind.NOT_FOUND, ResolveErrorKind.MALFORMED_RESPONSE):
            return RedirectOutcome.not_found(short_id)
        return RedirectOutcome.upstream_error(short_id, failure.status_code or INTERNAL_ERROR)

    def _diagnostic_url(self, request: Request, path: str, **params: object) -> str:
        base = self._settings.DIAGNOSTIC_BASE_URL or str(request.base_url).rstrip("/")
        return f"{base}{path}?{urlencode(params)}"

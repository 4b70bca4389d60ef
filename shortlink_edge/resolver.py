"""Client for the external short-link resolution and creation service.

Request Flow — resolve()
========================
::
    ┌─────────────┐
    │ resolve(id) │
    └──────┬──────┘
           ▼
    ┌──────────────────────────┐
    │ GET {base}/short-links/id │
    │ under asyncio.wait_for    │
    └──────┬───────────────────┘
           ▼
    ┌──────────────┬──────────────┬───────────────┬──────────────┐
    │ timeout      │ 404          │ other non-2xx │ 2xx          │
    ▼              ▼              ▼               ▼
  TIMEOUT      NOT_FOUND    UPSTREAM_FAILURE   parse envelope
                                              ┌─────┴─────┐
                                              │ ok         │ bad
                                              ▼            ▼
                                        ResolvedLink  MALFORMED_RESPONSE

Key Behaviours
===============
- Every failure is returned as a ResolveFailure value; nothing is raised for
  network errors, bad JSON, or timeouts.
- The timeout bounds the whole exchange and cancels the request on expiry.
- No retries. Callers decide what to do with a failure.
- Transport errors other than timeouts are reported as UPSTREAM_FAILURE(502).
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from shortlink_edge.enums import ResolveErrorKind
from shortlink_edge.schemas import CreatedLinkEnvelope, ShortLinkEnvelope

__all__ = [
    "BAD_GATEWAY",
    "CreatedLink",
    "DEFAULT_UPSTREAM_TIMEOUT_SECONDS",
    "REQUEST_TIMEOUT",
    "ResolveFailure",
    "ResolvedLink",
    "ShortLinkClient",
]

DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 5.0
REQUEST_TIMEOUT = 408
BAD_GATEWAY = 502

UPSTREAM_REQUESTS_TOTAL = Counter(
    "shortlink_edge_upstream_requests_total",
    "Total calls to the short-link service",
    ["operation", "result"],
)
UPSTREAM_DURATION = Histogram(
    "shortlink_edge_upstream_duration_seconds",
    "Time spent waiting on the short-link service",
    ["operation"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


# ============================================================================
# RESULT TYPES
# ============================================================================


@dataclass(frozen=True, slots=True)
class ResolvedLink:
    long_url: str


@dataclass(frozen=True, slots=True)
class CreatedLink:
    short_id: str


@dataclass(frozen=True, slots=True)
class ResolveFailure:
    """A failed upstream call, returned rather than raised.

    ``status_code`` carries the upstream HTTP status for UPSTREAM_FAILURE,
    408 for TIMEOUT, and is ``None`` otherwise.
    """

    kind: ResolveErrorKind
    status_code: int | None = None

    @classmethod
    def not_found(cls) -> "ResolveFailure":
        return cls(ResolveErrorKind.NOT_FOUND)

    @classmethod
    def timeout(cls) -> "ResolveFailure":
        return cls(ResolveErrorKind.TIMEOUT, REQUEST_TIMEOUT)

    @classmethod
    def upstream_failure(cls, status_code: int) -> "ResolveFailure":
        return cls(ResolveErrorKind.UPSTREAM_FAILURE, status_code)

    @classmethod
    def malformed(cls) -> "ResolveFailure":
        return cls(ResolveErrorKind.MALFORMED_RESPONSE)


# ============================================================================
# CLIENT
# ============================================================================


class ShortLinkClient:
    """Async client for ``{base}/short-links``.

    One instance is created per application and shared by every request;
    ``httpx.AsyncClient`` pools connections across them.

    Args:
        base_url: Service root, e.g. ``https://api.example.com``.
        timeout: Default bound, in seconds, for a whole request.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        logger: Logger for upstream diagnostics.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._logger = logger or logging.getLogger("shortlink_edge")
        self._client = httpx.AsyncClient(
            transport=transport,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    async def resolve(
        self,
        short_id: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> ResolvedLink | ResolveFailure:
        """Look up the long URL for ``short_id``.

        Args:
            short_id: Identifier taken from the inbound path.
            timeout: Overrides the client default for this call.
            headers: Extra headers, e.g. request-id propagation.

        Returns:
            ResolvedLink on success, ResolveFailure otherwise.
        """
        url = f"{self.base_url}/short-links/{quote(short_id, safe='')}"
        response = await self._send("resolve", "GET", url, timeout, headers=headers)
        if isinstance(response, ResolveFailure):
            return self._record("resolve", response)

        if response.status_code == 404:
            self._logger.info(f"Upstream has no link for {short_id}")
            return self._record("resolve", ResolveFailure.not_found())
        if not response.is_success:
            self._logger.warning(
                f"Upstream returned {response.status_code} for {short_id}"
            )
            return self._record(
                "resolve", ResolveFailure.upstream_failure(response.status_code)
            )

        try:
            envelope = ShortLinkEnvelope.model_validate_json(response.content)
        except ValidationError as exc:
            self._logger.error(
                f"Upstream response for {short_id} missing a usable longUrl: "
                f"{exc.error_count()} validation error(s)"
            )
            return self._record("resolve", ResolveFailure.malformed())

        return self._record("resolve", ResolvedLink(long_url=envelope.payload.long_url))

    async def create(
        self,
        long_url: str,
        timeout: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> CreatedLink | ResolveFailure:
        """Ask the service to shorten ``long_url``.

        Any non-2xx, including 404, is an UPSTREAM_FAILURE here.
        """
        url = f"{self.base_url}/short-links"
        response = await self._send(
            "create", "POST", url, timeout, headers=headers, json={"longUrl": long_url}
        )
        if isinstance(response, ResolveFailure):
            return self._record("create", response)

        if not response.is_success:
            self._logger.warning(f"Upstream create returned {response.status_code}")
            return self._record(
                "create", ResolveFailure.upstream_failure(response.status_code)
            )

        try:
            envelope = CreatedLinkEnvelope.model_validate_json(response.content)
        except ValidationError:
            self._logger.error("Upstream create response missing shortId")
            return self._record("create", ResolveFailure.malformed())

        return self._record("create", CreatedLink(short_id=envelope.payload.short_id))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ShortLinkClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        timeout: float | None,
        **kwargs: Any,
    ) -> httpx.Response | ResolveFailure:
        """Send one request bounded by ``timeout``; failures come back as values."""
        limit = self.timeout if timeout is None else timeout
        start_time = time.perf_counter()
        try:
            return await asyncio.wait_for(
                self._client.request(method, url, timeout=limit, **kwargs),
                timeout=limit,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            self._logger.warning(f"Upstream {operation} timed out after {limit}s: {url}")
            return ResolveFailure.timeout()
        except httpx.HTTPError as exc:
            self._logger.error(f"Upstream {operation} failed for {url}: {exc!r}")
            return ResolveFailure.upstream_failure(BAD_GATEWAY)
        finally:
            UPSTREAM_DURATION.labels(operation=operation).observe(
                time.perf_counter() - start_time
            )

    @staticmethod
    def _record(operation: str, result: Any) -> Any:
        label = result.kind.value if isinstance(result, ResolveFailure) else "success"
        UPSTREAM_REQUESTS_TOTAL.labels(operation=operation, result=label).inc()
        return result

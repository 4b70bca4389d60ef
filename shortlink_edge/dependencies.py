"""Explicitly constructed service container and per-request context.

EdgeServices owns the long-lived resources (settings, logger, link cache,
upstream client). create_app() builds exactly one and stores it on
``app.state.services``; the redirect interceptor and the routes read it from
there. There is no module-level singleton, so each app instance (and each
test) gets its own cache.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import httpx
from fastapi import Request

from shortlink_edge.cache import TTLCache
from shortlink_edge.config import Settings
from shortlink_edge.errors import ConfigurationMissingError
from shortlink_edge.resolver import ShortLinkClient

__all__ = [
    "EdgeServices",
    "LOGGER_NAME",
    "RequestContext",
    "build_request_context",
    "get_request_context",
    "get_services",
]

LOGGER_NAME = "shortlink_edge"


# ============================================================================
# SERVICE CONTAINER
# ============================================================================


class EdgeServices:
    """Shared resources for one application instance.

    Args:
        settings: Resolved configuration.
        cache: Optional pre-built cache; built from settings otherwise.
        transport: Optional httpx transport for the upstream client.
    """

    def __init__(
        self,
        settings: Settings,
        cache: TTLCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = self._setup_logger()
        if cache is None:
            cache = TTLCache(
                capacity=settings.CACHE_CAPACITY,
                eviction_batch=settings.CACHE_EVICTION_BATCH,
            )
        self.cache = cache
        self.client: ShortLinkClient | None = None
        if settings.SHORT_LINK_API_URL:
            self.client = ShortLinkClient(
                settings.SHORT_LINK_API_URL,
                timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
                transport=transport,
                logger=self.logger,
            )
        else:
            self.logger.error("SHORT_LINK_API_URL environment variable is not set.")

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger(LOGGER_NAME)
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    def require_client(self) -> ShortLinkClient:
        """Return the upstream client or fail with the fatal configuration error."""
        if self.client is None:
            raise ConfigurationMissingError("SHORT_LINK_API_URL is not configured")
        return self.client

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if self.client is not None:
            await self.client.aclose()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps per-call ``extra`` alongside the context fields."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


@dataclass
class RequestContext:
    """Per-request tracking data and shared resource access.

    Attributes:
        services: Application service container
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    services: EdgeServices
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.perf_counter)

    @property
    def settings(self) -> Settings:
        return self.services.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger carrying this request's identifiers."""
        return ContextLoggerAdapter(
            self.services.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000

    def get_context_headers(self) -> dict[str, str]:
        """Get context headers for downstream services."""
        return {"X-Request-ID": self.request_id}


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def build_request_context(request: Request) -> RequestContext:
    """Build a context from the raw request; usable outside FastAPI Depends."""
    return RequestContext(
        services=request.app.state.services,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


async def get_services(request: Request) -> EdgeServices:
    return request.app.state.services


async def get_request_context(request: Request) -> RequestContext:
    return build_request_context(request)

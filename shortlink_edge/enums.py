"""Shared enums for the short-link edge service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "HealthStatus", "OutcomeKind", "ResolveErrorKind"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class CacheStatus(StrEnum):
    """Cache lookup result labels for metrics and logging."""

    HIT = "hit"
    MISS = "miss"


class ResolveErrorKind(StrEnum):
    """Ways an upstream resolution can fail."""

    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    UPSTREAM_FAILURE = "upstream_failure"
    MALFORMED_RESPONSE = "malformed_response"


class OutcomeKind(StrEnum):
    """Terminal states of one pass through the redirect router."""

    REDIRECT = "redirect"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    PASS_THROUGH = "pass_through"

"""Pydantic schemas for the upstream envelope and the service's own endpoints.

Schema Hierarchy
=================
::
    ShortLinkEnvelope (upstream GET /short-links/{id}, 2xx)
    └─ payload: LongUrlPayload
       └─ longUrl: str (absolute URL)

    CreatedLinkEnvelope (upstream POST /short-links, 2xx)
    └─ payload: ShortIdPayload
       └─ shortId: str

    ShortLinkCreate (Input, POST /api/short-links)
    └─ longUrl: str (validated URL)

    ShortLinkCreated (Output)
    ├─ shortId: str
    └─ shortUrl: str

    HealthResponse (Output)
    ├─ status: HealthStatus
    ├─ upstream: HealthStatus
    └─ cache_entries: int

Key Behaviours
===============
- Creation input is validated with the validators library for RFC compliance.
- Upstream long URLs only need to be absolute (scheme + host).
- Upstream envelopes ignore unknown keys (``code``, ``message``, ``status``);
  a missing or invalid ``longUrl`` fails validation.
- Camel-case wire names are exposed as aliases; Python code uses snake_case.
"""

from urllib.parse import urlsplit

import validators
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shortlink_edge.enums import HealthStatus

__all__ = [
    "CreatedLinkEnvelope",
    "HealthResponse",
    "LongUrlPayload",
    "ShortIdPayload",
    "ShortLinkCreate",
    "ShortLinkCreated",
    "ShortLinkEnvelope",
    "is_absolute_url",
    "is_valid_url",
]


def is_absolute_url(value: str) -> bool:
    """Structural check: a scheme and a host, no whitespace.

    Applied to URLs the upstream service already accepted, so single-label
    hosts such as ``localhost`` and underscores in host names pass.
    """
    if not value or any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.hostname)


def is_valid_url(value: str) -> bool:
    return bool(validators.url(value))


class LongUrlPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    long_url: str = Field(..., alias="longUrl")

    @field_validator("long_url")
    @classmethod
    def validate_long_url(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError("longUrl is not a valid absolute URL")
        return v


class ShortLinkEnvelope(BaseModel):
    payload: LongUrlPayload


class ShortIdPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_id: str = Field(..., alias="shortId", min_length=1)


class CreatedLinkEnvelope(BaseModel):
    payload: ShortIdPayload


class ShortLinkCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    long_url: str = Field(..., alias="longUrl")

    @field_validator("long_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_url(v):
            raise ValueError("Invalid URL provided")
        return v


class ShortLinkCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    short_id: str = Field(..., alias="shortId")
    short_url: str = Field(..., alias="shortUrl")


class HealthResponse(BaseModel):
    status: HealthStatus
    upstream: HealthStatus
    cache_entries: int

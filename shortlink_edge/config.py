"""Configuration management for the short-link edge service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlink_edge.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    base = settings.SHORT_LINK_API_URL

**Step 3 — Override for a single app instance**::
    app = create_app(Settings(SHORT_LINK_API_URL="https://api.example.com"))

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- SHORT_LINK_API_URL may be absent at startup; the interceptor reports it
  as a fatal configuration error (HTTP 500) when a short link is requested.
- Out-of-range sizes and unsupported redirect codes raise ValidationError.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["DEFAULT_RESERVED_PATH_PREFIXES", "Settings", "get_settings"]

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RESERVED_PATH_PREFIXES = [
    "/api",
    "/_next/static",
    "/_next/image",
    "/favicon.ico",
    "/sitemap.xml",
    "/robots.txt",
    "/health",
    "/metrics",
    "/docs",
    "/redoc",
    "/openapi.json",
]

REDIRECT_STATUS_CODES = (301, 302, 307, 308)


class Settings(BaseSettings):
    APP_NAME: str = "shortlink-edge"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    # Public origin used when building short URLs; request origin when unset
    BASE_URL: str | None = None

    # Resolution / creation service
    SHORT_LINK_API_URL: str | None = None
    UPSTREAM_TIMEOUT_SECONDS: float = Field(5.0, gt=0)

    # In-process cache
    CACHE_TTL_SECONDS: int = Field(3600, gt=0)
    CACHE_CAPACITY: int = Field(10_000, ge=1)
    CACHE_EVICTION_BATCH: int = Field(1_000, ge=1)

    # Routing
    SHORT_ID_MIN_LENGTH: int = Field(3, ge=1)
    RESERVED_PATH_PREFIXES: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RESERVED_PATH_PREFIXES)
    )
    NOT_FOUND_PATH: str = "/link-not-found"
    ERROR_PATH: str = "/error"
    DIAGNOSTIC_BASE_URL: str | None = None
    REDIRECT_STATUS_CODE: int = 301

    # Collapse concurrent misses for the same id into one upstream call
    COALESCE_UPSTREAM_LOOKUPS: bool = False

    ENABLE_METRICS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("BASE_URL", "SHORT_LINK_API_URL", "DIAGNOSTIC_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @field_validator("REDIRECT_STATUS_CODE")
    @classmethod
    def validate_redirect_status(cls, v: int) -> int:
        if v not in REDIRECT_STATUS_CODES:
            raise ValueError(f"Redirect status must be one of {REDIRECT_STATUS_CODES}")
        return v

    @field_validator("NOT_FOUND_PATH", "ERROR_PATH")
    @classmethod
    def validate_diagnostic_path(cls, v: str) -> str:
        if not v.startswith("/") or v == "/":
            raise ValueError("Diagnostic paths must start with '/' and not be the root path")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_eviction_batch(self) -> "Settings":
        if self.CACHE_EVICTION_BATCH > self.CACHE_CAPACITY:
            raise ValueError("CACHE_EVICTION_BATCH must not exceed CACHE_CAPACITY")
        return self

    @property
    def reserved_prefixes(self) -> tuple[str, ...]:
        """Reserved prefixes including both diagnostic pages."""
        prefixes = [p.rstrip("/") for p in self.RESERVED_PATH_PREFIXES if p.strip("/")]
        for path in (self.NOT_FOUND_PATH, self.ERROR_PATH):
            if path not in prefixes:
                prefixes.append(path)
        return tuple(prefixes)


@lru_cache()
def get_settings() -> Settings:
    return Settings()

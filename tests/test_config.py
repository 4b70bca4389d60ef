"""Settings parsing and validation tests."""

import pytest
from pydantic import ValidationError

from shortlink_edge.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.CACHE_CAPACITY == 10_000
    assert settings.CACHE_EVICTION_BATCH == 1_000
    assert settings.UPSTREAM_TIMEOUT_SECONDS == 5.0
    assert settings.SHORT_ID_MIN_LENGTH == 3
    assert settings.REDIRECT_STATUS_CODE == 301


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHORT_LINK_API_URL", "https://api.example.com/")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("RESERVED_PATH_PREFIXES", '["/static", "/about"]')

    settings = Settings(_env_file=None)

    assert settings.SHORT_LINK_API_URL == "https://api.example.com"
    assert settings.CACHE_TTL_SECONDS == 60
    assert settings.RESERVED_PATH_PREFIXES == ["/static", "/about"]


def test_blank_api_url_counts_as_missing() -> None:
    assert Settings(_env_file=None, SHORT_LINK_API_URL="  ").SHORT_LINK_API_URL is None


def test_diagnostic_paths_always_reserved() -> None:
    settings = Settings(_env_file=None, RESERVED_PATH_PREFIXES=["/static/", "/"])

    assert settings.reserved_prefixes == ("/static", "/link-not-found", "/error")


@pytest.mark.parametrize(
    "overrides",
    [
        {"REDIRECT_STATUS_CODE": 200},
        {"CACHE_CAPACITY": 0},
        {"CACHE_CAPACITY": 10, "CACHE_EVICTION_BATCH": 11},
        {"UPSTREAM_TIMEOUT_SECONDS": 0},
        {"NOT_FOUND_PATH": "link-not-found"},
        {"ERROR_PATH": "/"},
    ],
)
def test_invalid_settings(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)

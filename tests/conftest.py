"""Shared pytest fixtures: a scripted upstream service and an app wired to it."""

import asyncio
import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortlink_edge.config import Settings
from shortlink_edge.main import create_app

UPSTREAM_BASE = "http://upstream.test"


class FakeUpstream:
    """Scripted stand-in for the short-link service.

    ``links`` maps short ids to long URLs (served as a proper envelope),
    ``responses`` maps short ids to a raw ``(status, body)`` pair, ids in
    ``slow`` never answer within any reasonable timeout, and ``delay`` holds
    every lookup open for a while so concurrent callers overlap.
    """

    def __init__(self) -> None:
        self.links: dict[str, str] = {}
        self.responses: dict[str, tuple[int, object]] = {}
        self.slow: set[str] = set()
        self.delay = 0.0
        self.created: dict[str, str] = {}
        self.create_response: tuple[int, object] | None = None
        self.requests: list[httpx.Request] = []

    def resolve_calls(self, short_id: str | None = None) -> int:
        return sum(
            1
            for request in self.requests
            if request.method == "GET"
            and (short_id is None or request.url.path == f"/short-links/{short_id}")
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST" and request.url.path == "/short-links":
            return self._create(request)

        short_id = request.url.path.removeprefix("/short-links/")
        if self.delay:
            await asyncio.sleep(self.delay)
        if short_id in self.slow:
            await asyncio.sleep(10)
        if short_id in self.responses:
            status, body = self.responses[short_id]
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)
        if short_id in self.links:
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "status": "success",
                    "message": "ok",
                    "payload": {"longUrl": self.links[short_id]},
                },
            )
        return httpx.Response(404, json={"code": 404, "message": "Not found"})

    def _create(self, request: httpx.Request) -> httpx.Response:
        if self.create_response is not None:
            status, body = self.create_response
            return httpx.Response(status, json=body)
        long_url = json.loads(request.content)["longUrl"]
        short_id = f"s{len(self.created) + 1:05d}"
        self.created[short_id] = long_url
        return httpx.Response(201, json={"payload": {"shortId": short_id}})


def make_settings(**overrides) -> Settings:
    values = {
        "SHORT_LINK_API_URL": UPSTREAM_BASE,
        "UPSTREAM_TIMEOUT_SECONDS": 0.2,
        "ENABLE_METRICS": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def transport(upstream: FakeUpstream) -> httpx.MockTransport:
    return httpx.MockTransport(upstream.handler)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings: Settings, transport: httpx.MockTransport):
    return create_app(settings, transport=transport)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.services.cleanup()

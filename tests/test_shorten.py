"""Creation proxy endpoint tests."""

import asyncio

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from shortlink_edge.main import create_app

from conftest import FakeUpstream, make_settings


@pytest.mark.asyncio
async def test_create_short_link(client: AsyncClient, upstream: FakeUpstream) -> None:
    response = await client.post("/api/short-links", json={"longUrl": "https://www.python.org"})

    assert response.status_code == 201
    assert response.json() == {"shortId": "s00001", "shortUrl": "http://test/s00001"}
    assert upstream.created == {"s00001": "https://www.python.org"}


@pytest.mark.asyncio
async def test_created_link_then_redirects(client: AsyncClient, upstream: FakeUpstream) -> None:
    created = await client.post("/api/short-links", json={"longUrl": "https://www.github.com"})
    short_id = created.json()["shortId"]
    upstream.links[short_id] = upstream.created[short_id]

    response = await client.get(f"/{short_id}", follow_redirects=False)

    assert response.status_code == 301
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_create_uses_public_base_url(transport: httpx.MockTransport) -> None:
    app = create_app(make_settings(BASE_URL="https://sho.rt/"), transport=transport)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/short-links", json={"longUrl": "https://example.com"})

    assert response.json()["shortUrl"] == "https://sho.rt/s00001"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"longUrl": "not-a-url"}, {"longUrl": ""}, {}])
async def test_create_rejects_invalid_url(client: AsyncClient, upstream: FakeUpstream, body: dict) -> None:
    response = await client.post("/api/short-links", json=body)

    assert response.status_code == 422
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_create_upstream_failure(client: AsyncClient, upstream: FakeUpstream) -> None:
    upstream.create_response = (500, {"message": "db down"})

    response = await client.post("/api/short-links", json={"longUrl": "https://example.com"})

    assert response.status_code == 502
    assert response.json()["code"] == "upstream_unavailable"
    assert "db down" not in response.text


@pytest.mark.asyncio
async def test_create_malformed_upstream_response(client: AsyncClient, upstream: FakeUpstream) -> None:
    upstream.create_response = (201, {"payload": {}})

    response = await client.post("/api/short-links", json={"longUrl": "https://example.com"})

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_create_without_configuration(transport: httpx.MockTransport) -> None:
    app = create_app(make_settings(SHORT_LINK_API_URL=None), transport=transport)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/short-links", json={"longUrl": "https://example.com"})

    assert response.status_code == 500
    assert response.text == "Internal Server Error: Configuration missing."


@pytest.mark.asyncio
async def test_create_timeout(upstream: FakeUpstream) -> None:
    async def stalled(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(201, json={"payload": {"shortId": "never"}})

    app = create_app(make_settings(UPSTREAM_TIMEOUT_SECONDS=0.05), transport=httpx.MockTransport(stalled))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/short-links", json={"longUrl": "https://example.com"})

    assert response.status_code == 504
    assert response.json()["code"] == "upstream_timeout"

"""Health endpoint tests."""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from shortlink_edge.enums import HealthStatus
from shortlink_edge.main import create_app

from conftest import FakeUpstream, make_settings


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient, upstream: FakeUpstream) -> None:
    upstream.links["abc"] = "https://example.com/page"
    await client.get("/abc", follow_redirects=False)

    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["upstream"] == HealthStatus.HEALTHY.value
    assert data["cache_entries"] == 1


@pytest.mark.asyncio
async def test_health_check_without_upstream(transport: httpx.MockTransport) -> None:
    app = create_app(make_settings(SHORT_LINK_API_URL=None), transport=transport)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == HealthStatus.UNHEALTHY.value

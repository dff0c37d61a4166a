"""
Health endpoint test. Redis points at a closed port in the test environment.
"""

import pytest
from api_helpers import API
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_reports_components(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.json() == {"db": True, "redis": False}

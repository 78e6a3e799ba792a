"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    """Health endpoint returns server status and DB connectivity."""
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert "version" in data
    assert "redis" not in data


@pytest.mark.asyncio
async def test_health_degraded_when_redis_down(client, app):
    class DeadRedis:
        async def ping(self):
            raise ConnectionError("connection refused")

    app.state.redis = DeadRedis()
    r = await client.get("/api/v1/health")
    data = r.json()
    assert data["status"] == "degraded"
    assert data["redis"].startswith("error:")

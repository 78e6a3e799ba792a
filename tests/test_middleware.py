"""Tests for security middleware — headers, request ID, rate limiting."""

import pytest

from tests.conftest import ALICE


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the rate limiter."""

    def __init__(self):
        self.counts: dict[str, int] = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        return True

    async def ping(self):
        return True


class BrokenRedis(FakeRedis):
    async def incr(self, key):
        raise ConnectionError("redis went away")


# ─── Security headers ───────────────────────────────────


@pytest.mark.asyncio
async def test_security_headers(client):
    """Security headers are present on all responses."""
    r = await client.get("/api/v1/health")
    assert r.headers["x-content-type-options"] == "nosniff"
    assert r.headers["x-frame-options"] == "DENY"
    assert r.headers["referrer-policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    """HSTS is not sent over plain HTTP."""
    r = await client.get("/api/v1/health")
    assert "strict-transport-security" not in r.headers


@pytest.mark.asyncio
async def test_token_responses_are_not_cached(client, alice):
    r = await client.post(
        "/api/v1/users/login",
        json={"username": "alice", "password": "Secret1"},
    )
    assert r.headers["cache-control"] == "no-store"
    assert r.headers["pragma"] == "no-cache"

    r = await client.get("/api/v1/health")
    assert "cache-control" not in r.headers


# ─── Request ID ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Response includes an auto-generated request ID."""
    r = await client.get("/api/v1/health")
    assert len(r.headers["x-request-id"]) == 32


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Client-provided request ID is echoed back."""
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-123"})
    assert r.headers["x-request-id"] == "trace-123"


# ─── Rate limiting ──────────────────────────────────────


@pytest.mark.asyncio
async def test_no_redis_means_no_limit(client):
    for _ in range(15):
        r = await client.get("/api/v1/health")
        assert r.status_code == 200
    assert "x-ratelimit-limit" not in r.headers


@pytest.mark.asyncio
async def test_auth_routes_are_rate_limited(client, app, settings):
    app.state.redis = FakeRedis()
    limit = settings.rate_limit_auth_rpm

    creds = {"username": "nobody", "password": "whatever"}
    for i in range(limit):
        r = await client.post("/api/v1/users/login", json=creds)
        assert r.status_code == 404
        assert r.headers["x-ratelimit-limit"] == str(limit)
        assert r.headers["x-ratelimit-remaining"] == str(limit - i - 1)

    r = await client.post("/api/v1/users/login", json=creds)
    assert r.status_code == 429
    assert r.headers["retry-after"] == "60"
    body = r.json()
    assert body["statusCode"] == 429
    assert body["success"] is False


@pytest.mark.asyncio
async def test_auth_bucket_is_separate(client, app, settings):
    """Exhausting the credential bucket leaves the rest of the API alone."""
    app.state.redis = FakeRedis()
    for _ in range(settings.rate_limit_auth_rpm + 1):
        await client.post("/api/v1/users/register", json=ALICE)

    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.headers["x-ratelimit-limit"] == str(settings.rate_limit_rpm)


@pytest.mark.asyncio
async def test_redis_errors_fail_open(client, app):
    app.state.redis = BrokenRedis()
    r = await client.post(
        "/api/v1/users/login", json={"username": "nobody", "password": "x"}
    )
    assert r.status_code == 404

"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite database (aiosqlite driver).
   StaticPool keeps the single connection alive so every session sees
   the same tables and rows.
2. The app is built with create_app(settings, database) — the Database
   handle is injected, so no lifespan and no real Postgres/Redis needed.
3. bcrypt rounds drop to 4 (the minimum) to keep hashing fast.

Session cookies are issued with ``secure=True``; the client talks plain
http://test, so httpx never sends them back on its own. Tests that
exercise the cookie path set the Cookie header explicitly.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from vidtube.auth.jwt import TokenIssuer
from vidtube.config import Settings
from vidtube.db.engine import Database
from vidtube.main import create_app

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ALICE = {
    "username": "alice",
    "email": "a@x.com",
    "password": "Secret1",
    "fullName": "Alice A",
}


@pytest.fixture()
def settings():
    return Settings(
        environment="test",
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
        bcrypt_rounds=4,
        log_level="WARNING",
        log_json=False,
    )


@pytest.fixture()
def tokens(settings):
    return TokenIssuer.from_settings(settings)


@pytest_asyncio.fixture()
async def database():
    """Per-test in-memory database with all tables created."""
    db = Database(TEST_DB_URL, poolclass=StaticPool)
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest_asyncio.fixture()
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture()
def app(settings, database):
    return create_app(settings, database=database)


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def alice(client):
    """A registered user. Returns the registration body plus ``id``."""
    r = await client.post("/api/v1/users/register", json=ALICE)
    assert r.status_code == 201, r.text
    return {**ALICE, "id": r.json()["data"]["id"]}


@pytest_asyncio.fixture()
async def alice_session(client, alice):
    """alice, logged in. Returns the login ``data`` (user + both tokens)."""
    r = await client.post(
        "/api/v1/users/login",
        json={"username": alice["username"], "password": alice["password"]},
    )
    assert r.status_code == 200, r.text
    client.cookies.clear()
    return r.json()["data"]


@pytest.fixture()
def alice_headers(alice_session):
    return {"Authorization": f"Bearer {alice_session['accessToken']}"}

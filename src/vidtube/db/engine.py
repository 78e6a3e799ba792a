"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

There is no module-level engine. A ``Database`` handle is built once
(by the app lifespan, the CLI, or a test fixture), parked on
``app.state.db``, and disposed at shutdown. ``get_db`` hands each request
its own session from that handle.
"""

from typing import Any, AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from vidtube.config import Settings
from vidtube.db.models import Base


class Database:
    """Owns one engine + session factory. connect on init, dispose() to close."""

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url, echo=echo, **engine_kwargs
        )
        # Session factory — each request gets its own session.
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        kwargs: dict[str, Any] = {}
        # Connection pool: min 5, max 20 connections (server databases only).
        if not settings.database_url.startswith("sqlite"):
            kwargs.update(pool_size=5, max_overflow=15, pool_pre_ping=True)
        return cls(settings.database_url, echo=settings.database_echo, **kwargs)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        """Create any missing tables. Development and test convenience only."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session

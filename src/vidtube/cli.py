"""VidTube CLI — run the API server and prepare a database.

Usage:
    vidtube serve                        # uvicorn on VIDTUBE_HOST:VIDTUBE_PORT
    vidtube serve --port 9000 --reload   # dev server with auto-reload
    vidtube init-db                      # create missing tables
    vidtube init-db --database-url sqlite+aiosqlite:///./dev.db
"""

from __future__ import annotations

import asyncio
from typing import Optional

import click

from vidtube.config import Settings


@click.group()
def cli():
    """VidTube backend management commands."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: VIDTUBE_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: VIDTUBE_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "vidtube.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command("init-db")
@click.option("--database-url", default=None, help="Override VIDTUBE_DATABASE_URL")
def init_db(database_url: Optional[str]):
    """Create all tables that do not exist yet."""
    from vidtube.db.engine import Database

    settings = Settings()
    url = database_url or settings.database_url

    async def _create() -> None:
        database = Database(url)
        try:
            await database.create_all()
        finally:
            await database.dispose()

    asyncio.run(_create())
    click.secho(f"Tables created on {_redact_url(url)}", fg="green")


def _redact_url(url: str) -> str:
    """Hide credentials in a database URL before printing it."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


def main():
    cli()


if __name__ == "__main__":
    main()

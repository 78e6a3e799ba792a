"""CLI tests using click's CliRunner."""

import sqlite3

from click.testing import CliRunner

from vidtube.cli import _redact_url, cli


def test_init_db_creates_tables(tmp_path):
    db_file = tmp_path / "cli.db"
    runner = CliRunner()
    result = runner.invoke(
        cli, ["init-db", "--database-url", f"sqlite+aiosqlite:///{db_file}"]
    )
    assert result.exit_code == 0, result.output
    assert "Tables created" in result.output

    with sqlite3.connect(db_file) as conn:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    assert {"users", "videos", "subscriptions", "watch_history", "comments", "likes"} <= tables


def test_redact_url():
    assert (
        _redact_url("postgresql+asyncpg://vidtube:hunter2@db:5432/vidtube")
        == "postgresql+asyncpg://***@db:5432/vidtube"
    )
    assert _redact_url("sqlite+aiosqlite:///./dev.db") == "sqlite+aiosqlite:///./dev.db"


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output
    assert "init-db" in result.output

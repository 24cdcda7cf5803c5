"""Command line entry point tests."""

from __future__ import annotations

import pytest
import uvicorn
from pydantic import ValidationError

from webgate import main as cli
from webgate.config.database import DatabaseConfig
from webgate.config.settings import Settings, get_settings
from webgate.database.engine import get_engine
from webgate.migrator.definitions import MigrationDefinition


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setenv("SESSION_PURGE_INTERVAL_SECONDS", "0")
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_engine().dispose()
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def served(monkeypatch):
    calls: list[dict] = []

    def fake_run(app, **kwargs):
        calls.append({"app": app, **kwargs})

    monkeypatch.setattr(uvicorn, "run", fake_run)
    return calls


def _broken(package):
    def upgrade() -> None:
        raise RuntimeError("boom")

    return [MigrationDefinition("0001_broken", upgrade)]


def test_migrate_reports_executed_then_up_to_date(capsys):
    assert cli.main(["--migrate"]) == 0
    assert (
        capsys.readouterr().out.strip()
        == "Executed 2 migration(s): 0001_create_users 0002_create_sessions"
    )

    assert cli.main(["--migrate"]) == 0
    assert capsys.readouterr().out.strip() == "Database was up to date!"


def test_migration_status_lists_pending(capsys):
    assert cli.main(["--migration-status"]) == 0
    out = capsys.readouterr().out
    assert "- 0001_create_users (pending)" in out
    assert "- 0002_create_sessions (pending)" in out


def test_revert_last(capsys):
    cli.main(["--migrate"])
    capsys.readouterr()

    assert cli.main(["--revert-last"]) == 0
    assert capsys.readouterr().out.strip() == "Reverted 0002_create_sessions"


def test_purge_sessions(capsys):
    cli.main(["--migrate"])
    capsys.readouterr()

    assert cli.main(["--purge-sessions"]) == 0
    assert capsys.readouterr().out.strip() == "Purged 0 expired session(s)"


def test_server_does_not_start_when_a_migration_fails(monkeypatch, served):
    monkeypatch.setattr(cli, "load_definitions", _broken)

    assert cli.main(["--server"]) == 1
    assert served == []


def test_server_starts_after_migrations(served):
    assert cli.main(["--server", "--port", "9001"]) == 0

    assert len(served) == 1
    assert served[0]["port"] == 9001
    assert served[0]["app"].state.gate.is_open
    assert served[0]["app"].state.gate.applied == [
        "0001_create_users",
        "0002_create_sessions",
    ]


def test_database_password_is_masked_for_logs():
    config = DatabaseConfig("postgresql://app:s3cret@db:5432/app", False, True, "pkg")
    assert "s3cret" not in config.display_url
    assert config.display_url.startswith("postgresql://app:***@db:5432")


def test_unreachable_database_fails_cleanly(tmp_path, monkeypatch, served, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
    get_settings.cache_clear()
    get_engine.cache_clear()

    assert cli.main(["--migrate"]) == 1
    assert cli.main(["--migration-status"]) == 1
    assert cli.main(["--server"]) == 1
    assert served == []
    assert capsys.readouterr().out == ""


def test_production_requires_a_session_secret(monkeypatch):
    monkeypatch.delenv("SESSION_SECRET", raising=False)
    with pytest.raises(ValidationError, match="SESSION_SECRET"):
        Settings(APP_ENV="production")

    assert Settings(APP_ENV="production", SESSION_SECRET="s3cret").is_production

"""Startup gate tests: no request is handled before migrations succeed."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from webgate.api import create_app
from webgate.errors import MigrationError, StartupGateClosed
from webgate.migrator.definitions import MigrationDefinition, load_definitions
from webgate.migrator.runner import MigrationRunner
from webgate.pipeline.gate import StartupGate, describe_migrations


def _failing_definitions() -> list[MigrationDefinition]:
    def upgrade() -> None:
        raise RuntimeError("boom")

    return load_definitions("webgate.migrations") + [
        MigrationDefinition("0003_broken", upgrade)
    ]


def test_requests_wait_for_the_gate(settings, engine):
    app = create_app(settings, engine=engine)

    # No lifespan: the gate never opens.
    client = TestClient(app)
    response = client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["code"] == "NOT_READY"


def test_lifespan_migrates_a_fresh_database(settings, engine):
    app = create_app(settings, engine=engine)

    with TestClient(app) as client:
        assert client.get("/api/health").json() == {"status": "ok"}

    assert app.state.gate.applied == ["0001_create_users", "0002_create_sessions"]


def test_failed_migration_keeps_server_down(settings, engine):
    app = create_app(settings, engine=engine, definitions=_failing_definitions())

    with pytest.raises(MigrationError):
        with TestClient(app):
            pass

    assert not app.state.gate.is_open


def test_pending_migrations_block_startup_without_auto_migrate(settings, engine):
    app = create_app(
        settings.model_copy(update={"database_auto_migrate": False}), engine=engine
    )

    with pytest.raises(StartupGateClosed):
        with TestClient(app):
            pass


def test_gate_stays_closed_after_failure_and_retries(engine):
    attempts = {"count": 0}

    def flaky() -> None:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise RuntimeError("transient")

    definitions = load_definitions("webgate.migrations") + [
        MigrationDefinition("0003_flaky", flaky)
    ]
    gate = StartupGate(MigrationRunner(engine, definitions))

    with pytest.raises(MigrationError) as excinfo:
        gate.open()

    assert not gate.is_open
    assert excinfo.value.applied == ["0001_create_users", "0002_create_sessions"]

    assert gate.open() == ["0003_flaky"]
    assert gate.is_open
    assert gate.open() == ["0003_flaky"]


def test_describe_migrations():
    assert describe_migrations(["0001_a", "0002_b"]) == "Executed 2 migration(s): 0001_a 0002_b"
    assert describe_migrations([]) == "Database was up to date!"

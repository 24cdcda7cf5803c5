"""
Pytest fixtures for webgate tests
"""
from __future__ import annotations

import pytest
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from webgate.api import create_app
from webgate.auth import (
    current_principal,
    flash,
    get_flash,
    get_session,
    login,
    require_principal,
)
from webgate.config.settings import Settings
from webgate.database.engine import build_engine
from webgate.database.session import build_session_factory
from webgate.migrator.definitions import load_definitions
from webgate.migrator.runner import MigrationRunner
from webgate.principals.store import SqlPrincipalStore


class CountingPrincipalStore(SqlPrincipalStore):
    """SqlPrincipalStore that records every lookup."""

    def __init__(self, session_factory) -> None:
        super().__init__(session_factory)
        self.lookups: list[str] = []

    def find_by_id(self, identifier: str):
        self.lookups.append(identifier)
        return super().find_by_id(identifier)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'webgate.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def migrated_engine(engine):
    MigrationRunner(engine, load_definitions("webgate.migrations")).apply_pending()
    return engine


@pytest.fixture
def static_dir(tmp_path):
    directory = tmp_path / "static"
    directory.mkdir()
    (directory / "app.css").write_text("body { color: black; }", encoding="utf-8")
    return directory


@pytest.fixture
def settings(tmp_path, static_dir):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'webgate.db'}",
        SESSION_SECRET="test-secret",
        SESSION_PURGE_INTERVAL_SECONDS=0,
        STATIC_DIRS=[str(static_dir)],
        LOG_DIR=str(tmp_path / "log"),
    )


@pytest.fixture
def principal_store(session_factory):
    return CountingPrincipalStore(session_factory)


@pytest.fixture
def extra_routes(principal_store):
    """Routes standing in for the application's own handlers."""
    router = APIRouter()

    @router.get("/whoami")
    def whoami(request: Request):
        principal = current_principal(request)
        return {
            "session_id": get_session(request).id,
            "principal": principal.username if principal.is_authenticated else None,
            "flash": get_flash(request),
        }

    @router.post("/login/{user_id}")
    def do_login(user_id: int, request: Request):
        principal = principal_store.find_by_id(str(user_id))
        login(request, principal)
        return {"status": "ok"}

    @router.get("/me")
    def me(principal=Depends(require_principal)):
        return {"username": principal.username}

    @router.post("/flash")
    def add_notice(request: Request):
        flash(request, "info", "saved")
        return {"status": "ok"}

    @router.post("/echo")
    def echo(request: Request):
        return dict(request.state.form)

    @router.get("/big")
    def big():
        return PlainTextResponse("x" * 4000)

    return router


@pytest.fixture
def app(settings, migrated_engine, principal_store, extra_routes):
    return create_app(
        settings,
        engine=migrated_engine,
        principal_store=principal_store,
        routers=[extra_routes],
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def csrf_token(client: TestClient) -> str:
    response = client.get("/api/session")
    assert response.status_code == 200
    return response.json()["csrf_token"]

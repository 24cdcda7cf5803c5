from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Iterable

from fastapi import APIRouter, Depends, FastAPI, Request
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from webgate.auth import current_principal, get_csrf_token, get_flash, logout
from webgate.config.settings import Settings, get_settings
from webgate.database.engine import build_engine
from webgate.database.session import build_session_factory
from webgate.errors import SessionStoreError
from webgate.migrator.definitions import MigrationDefinition, load_definitions
from webgate.migrator.runner import MigrationRunner
from webgate.pipeline import StartupGate, build_pipeline
from webgate.principals.models import AnonymousPrincipal, Principal
from webgate.principals.serializer import PrincipalSerializer
from webgate.principals.store import PrincipalStore, SqlPrincipalStore
from webgate.session_store import build_session_store
from webgate.session_store.interface import SessionRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/session")
def session_info(
    request: Request,
    principal: Principal | AnonymousPrincipal = Depends(current_principal),
):
    return {
        "csrf_token": get_csrf_token(request),
        "principal": (
            {"id": principal.id, "username": principal.username}
            if principal.is_authenticated
            else None
        ),
        "flash": get_flash(request),
    }


@router.post("/logout")
def logout_session(request: Request):
    logout(request)
    return {"status": "logged_out"}


async def purge_sessions_periodically(store: SessionRepository, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            purged = await run_in_threadpool(store.purge_expired)
        except SessionStoreError as exc:
            logger.warning("Session purge failed: %s", exc)
            continue
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error while purging sessions")
            continue
        if purged:
            logger.info("Purged %d expired session(s)", purged)


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    gate: StartupGate | None = None,
    definitions: Iterable[MigrationDefinition] | None = None,
    principal_store: PrincipalStore | None = None,
    session_store: SessionRepository | None = None,
    routers: Iterable[APIRouter] = (),
) -> FastAPI:
    """Wire the request pipeline around the API routes.

    Nothing is served until ``gate`` is open. When the caller has not opened
    it already, the lifespan startup does (running migrations when
    ``DATABASE_AUTO_MIGRATE`` is set, otherwise only checking that none are
    pending); uvicorn does not accept connections before that finishes.
    """
    settings = settings or get_settings()
    engine = engine or build_engine(settings.database_url, echo=settings.database_echo)
    session_factory = build_session_factory(engine)

    if gate is None:
        if definitions is None:
            definitions = load_definitions(settings.migrations_package)
        gate = StartupGate(MigrationRunner(engine, definitions))

    session_store = session_store or build_session_store(settings, session_factory)
    serializer = PrincipalSerializer(principal_store or SqlPrincipalStore(session_factory))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not gate.is_open:
            await run_in_threadpool(
                lambda: gate.open(apply=settings.database_auto_migrate)
            )

        purge_task = None
        if settings.session_purge_interval_seconds > 0:
            purge_task = asyncio.create_task(
                purge_sessions_periodically(
                    session_store, settings.session_purge_interval_seconds
                )
            )
        try:
            yield
        finally:
            if purge_task is not None:
                purge_task.cancel()
                with suppress(asyncio.CancelledError):
                    await purge_task

    app = FastAPI(
        title="webgate",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
        middleware=build_pipeline(
            settings,
            gate=gate,
            session_store=session_store,
            serializer=serializer,
        ),
    )
    app.state.settings = settings
    app.state.gate = gate
    app.state.session_store = session_store
    app.state.principal_serializer = serializer

    app.include_router(router)
    for extra in routers:
        app.include_router(extra)
    return app

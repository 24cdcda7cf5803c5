"""Server-side session persistence."""

from datetime import timedelta

from sqlalchemy.orm import Session, sessionmaker

from webgate.config.settings import Settings
from webgate.session_store.db_store import DbSessionStore
from webgate.session_store.interface import SessionRepository
from webgate.session_store.record_ops import SessionData, SessionState


def build_session_store(
    settings: Settings, session_factory: sessionmaker[Session]
) -> SessionRepository:
    return DbSessionStore(
        session_factory,
        idle_timeout=timedelta(seconds=settings.session_idle_timeout_seconds),
    )


__all__ = [
    "DbSessionStore",
    "SessionData",
    "SessionRepository",
    "SessionState",
    "build_session_store",
]

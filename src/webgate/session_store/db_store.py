from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from webgate.database.session import session_scope
from webgate.errors import SessionStoreError
from webgate.models._time import as_utc, utc_now
from webgate.models.session_record import SessionRecord
from . import record_ops
from .record_ops import SessionState

logger = logging.getLogger(__name__)


class DbSessionStore:
    """SQL-backed session persistence.

    Expired rows are invisible to ``load`` even before ``purge_expired``
    deletes them. Every call runs in its own transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        idle_timeout: timedelta = timedelta(days=1),
    ) -> None:
        self._session_factory = session_factory
        self._idle_timeout = idle_timeout

    def generate_id(self) -> str:
        return secrets.token_urlsafe(32)

    def create(self) -> SessionState:
        return record_ops.new_state(self.generate_id())

    def load(self, session_id: str) -> SessionState | None:
        try:
            with session_scope(self._session_factory) as db:
                row = db.scalar(select(SessionRecord).where(SessionRecord.id == session_id))
                if row is None:
                    return None
                expires_at = as_utc(row.expires_at)
                payload = row.data
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Could not load session: {exc}") from exc

        if expires_at <= utc_now():
            return None
        try:
            data = record_ops.load_data(payload)
        except ValidationError:
            logger.warning("Discarding unreadable session payload for %s", session_id[:8])
            return None
        return SessionState(id=session_id, data=data, expires_at=expires_at)

    def save(self, state: SessionState) -> SessionState:
        expires_at = record_ops.next_expiry(self._idle_timeout)
        payload = record_ops.dump_data(state.data)

        try:
            with session_scope(self._session_factory) as db:
                existing = db.scalar(select(SessionRecord).where(SessionRecord.id == state.id))
                if existing is None:
                    db.add(
                        SessionRecord(
                            id=state.id,
                            data=payload,
                            expires_at=expires_at,
                        )
                    )
                else:
                    existing.data = payload
                    existing.expires_at = expires_at
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Could not save session: {exc}") from exc

        return state.model_copy(update={"expires_at": expires_at}, deep=True)

    def destroy(self, session_id: str) -> None:
        try:
            with session_scope(self._session_factory) as db:
                db.execute(delete(SessionRecord).where(SessionRecord.id == session_id))
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Could not destroy session: {exc}") from exc

    def purge_expired(self) -> int:
        try:
            with session_scope(self._session_factory) as db:
                result = db.execute(
                    delete(SessionRecord).where(SessionRecord.expires_at <= utc_now())
                )
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Could not purge sessions: {exc}") from exc

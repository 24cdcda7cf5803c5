from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from webgate.database.session import session_scope
from webgate.errors import PrincipalLookupError
from webgate.models.user import User
from webgate.principals.models import Principal


class PrincipalStore(Protocol):
    def find_by_id(self, identifier: str) -> Principal | None:
        ...


class SqlPrincipalStore:
    """Looks principals up in the ``users`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _to_principal(user: User) -> Principal:
        return Principal(id=user.id, username=user.username)

    def find_by_id(self, identifier: str) -> Principal | None:
        try:
            user_id = int(identifier)
        except (TypeError, ValueError):
            return None

        try:
            with session_scope(self._session_factory) as db:
                user = db.scalar(select(User).where(User.id == user_id))
                return self._to_principal(user) if user is not None else None
        except SQLAlchemyError as exc:
            raise PrincipalLookupError(f"Principal lookup failed: {exc}") from exc

    def add(self, username: str, password_hash: str = "") -> Principal:
        with session_scope(self._session_factory) as db:
            user = User(username=username, password_hash=password_hash)
            db.add(user)
            db.flush()
            return self._to_principal(user)

    def remove(self, identifier: int | str) -> None:
        with session_scope(self._session_factory) as db:
            user = db.get(User, int(identifier))
            if user is not None:
                db.delete(user)

from __future__ import annotations

from typing import Protocol

from webgate.errors import PrincipalNotFound
from webgate.principals.models import Principal
from webgate.principals.store import PrincipalStore


class HasId(Protocol):
    id: object


class PrincipalSerializer:
    """Turns a principal into the reference kept in the session and back."""

    def __init__(self, store: PrincipalStore) -> None:
        self._store = store

    def serialize(self, principal: HasId) -> str:
        if principal.id is None:
            raise ValueError("Cannot serialize a principal without an id")
        return str(principal.id)

    def deserialize(self, reference: str) -> Principal:
        # PrincipalLookupError from the store propagates; callers fail closed.
        principal = self._store.find_by_id(reference)
        if principal is None:
            raise PrincipalNotFound(reference)
        return principal

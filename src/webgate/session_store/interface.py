from __future__ import annotations

from typing import Protocol

from webgate.session_store.record_ops import SessionState


class SessionRepository(Protocol):
    """Shared contract for session persistence backends."""

    def generate_id(self) -> str:
        ...

    def create(self) -> SessionState:
        ...

    def load(self, session_id: str) -> SessionState | None:
        ...

    def save(self, state: SessionState) -> SessionState:
        ...

    def destroy(self, session_id: str) -> None:
        ...

    def purge_expired(self) -> int:
        ...

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a single request."""

    id: int | str
    username: str

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclass(frozen=True)
class AnonymousPrincipal:
    id: None = None
    username: str = ""

    @property
    def is_authenticated(self) -> bool:
        return False


ANONYMOUS = AnonymousPrincipal()

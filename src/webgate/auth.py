"""Helpers for route handlers running behind the request pipeline."""

from __future__ import annotations

from fastapi import HTTPException, Request

from webgate.pipeline.state import (
    CSRF_TOKEN_KEY,
    FLASH_KEY,
    PRINCIPAL_KEY,
    SessionHandle,
    session_handle,
)
from webgate.principals.models import ANONYMOUS, AnonymousPrincipal, Principal
from webgate.principals.serializer import PrincipalSerializer
from webgate.session_store.record_ops import add_flash


def get_session(request: Request) -> SessionHandle:
    return session_handle(request.scope)


def get_csrf_token(request: Request) -> str:
    return getattr(request.state, CSRF_TOKEN_KEY)


def get_flash(request: Request) -> dict[str, list[str]]:
    return getattr(request.state, FLASH_KEY, {})


def current_principal(request: Request) -> Principal | AnonymousPrincipal:
    return getattr(request.state, PRINCIPAL_KEY, ANONYMOUS)


def require_principal(request: Request) -> Principal:
    principal = current_principal(request)
    if not principal.is_authenticated:
        raise HTTPException(status_code=401, detail="Authentication required")
    return principal


def login(request: Request, principal: Principal) -> None:
    """Bind ``principal`` to the session; the session id is rotated on commit."""
    serializer: PrincipalSerializer = request.app.state.principal_serializer
    handle = get_session(request)
    handle.data.principal_id = serializer.serialize(principal)
    handle.regenerate()
    setattr(request.state, PRINCIPAL_KEY, principal)


def logout(request: Request) -> None:
    get_session(request).destroy()
    setattr(request.state, PRINCIPAL_KEY, ANONYMOUS)


def flash(request: Request, category: str, message: str) -> None:
    add_flash(get_session(request).data, category, message)

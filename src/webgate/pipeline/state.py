from __future__ import annotations

from typing import Any, MutableMapping

from starlette.responses import JSONResponse

from webgate.session_store.record_ops import SessionData, SessionState, dump_data

Scope = MutableMapping[str, Any]

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# Keys under ``scope["state"]``; routes read them as ``request.state.<key>``.
SESSION_KEY = "session"
FORM_KEY = "form"
FLASH_KEY = "flash"
CSRF_TOKEN_KEY = "csrf_token"
PRINCIPAL_KEY = "principal"
DISCONNECT_CHECK_KEY = "disconnect_check"


def request_state(scope: Scope) -> dict[str, Any]:
    return scope.setdefault("state", {})


async def client_disconnected(scope: Scope) -> bool:
    """True once the body stage has seen the client go away."""
    check = request_state(scope).get(DISCONNECT_CHECK_KEY)
    return check is not None and await check()


def error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


class SessionHandle:
    """Request-scoped view of a session plus what should happen to it at commit."""

    def __init__(
        self, state: SessionState, *, is_new: bool, degraded: bool = False
    ) -> None:
        self.state = state
        self.is_new = is_new
        self.degraded = degraded
        self.regenerate_requested = False
        self.destroy_requested = False
        self._snapshot = dump_data(state.data)

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def data(self) -> SessionData:
        return self.state.data

    @property
    def modified(self) -> bool:
        return dump_data(self.state.data) != self._snapshot

    def regenerate(self) -> None:
        self.regenerate_requested = True

    def destroy(self) -> None:
        self.destroy_requested = True


def session_handle(scope: Scope) -> SessionHandle:
    handle = request_state(scope).get(SESSION_KEY)
    if handle is None:
        raise RuntimeError("SessionMiddleware must run before this stage")
    return handle

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Send

from webgate.errors import SessionStoreError
from webgate.pipeline.state import (
    SAFE_METHODS,
    SESSION_KEY,
    Scope,
    SessionHandle,
    client_disconnected,
    error_response,
    request_state,
)
from webgate.session_store.cookies import sign, unsign
from webgate.session_store.interface import SessionRepository

logger = logging.getLogger(__name__)


class SessionMiddleware:
    """Attach a server-side session to each request.

    The session id travels in a signed cookie. New and modified sessions are
    saved when the response starts, which is also when the cookie is set or
    cleared. A store failure fails closed with 503 unless
    ``degrade_to_anonymous`` allows a safe, unauthenticated request through
    without a session.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionRepository,
        secret: str,
        cookie_name: str = "sid",
        max_age: int | None = None,
        secure: bool = False,
        degrade_to_anonymous: bool = False,
    ) -> None:
        self.app = app
        self.store = store
        self.secret = secret
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.degrade_to_anonymous = degrade_to_anonymous

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        connection = HTTPConnection(scope)
        cookie = connection.cookies.get(self.cookie_name)
        session_id = unsign(cookie, self.secret) if cookie else None

        state = None
        degraded = False
        if session_id:
            if await client_disconnected(scope):
                logger.debug("Client disconnected; skipping session load")
                return
            try:
                state = await run_in_threadpool(self.store.load, session_id)
            except SessionStoreError as exc:
                logger.error("Session load failed: %s", exc)
                if not self._may_degrade(scope):
                    await self._unavailable(scope, receive, send)
                    return
                degraded = True
            if state is None and not degraded:
                logger.info("Session expired or unknown; starting a new one")
        elif cookie:
            logger.warning("Ignoring session cookie with a bad signature")

        if state is None:
            handle = SessionHandle(self.store.create(), is_new=True, degraded=degraded)
        else:
            handle = SessionHandle(state, is_new=False)
        request_state(scope)[SESSION_KEY] = handle

        replaced = False

        async def send_wrapper(message: Message) -> None:
            nonlocal replaced
            if replaced:
                return
            if message["type"] == "http.response.start":
                try:
                    cookies = await run_in_threadpool(self._commit, handle)
                except SessionStoreError as exc:
                    logger.error("Session save failed: %s", exc)
                    if not (self._may_degrade(scope) and handle.data.principal_id is None):
                        replaced = True
                        await self._unavailable(scope, receive, send)
                        return
                    cookies = []
                headers = MutableHeaders(scope=message)
                for value in cookies:
                    headers.append("set-cookie", value)
            await send(message)

        await self.app(scope, receive, send_wrapper)

    def _may_degrade(self, scope: Scope) -> bool:
        return self.degrade_to_anonymous and scope["method"] in SAFE_METHODS

    async def _unavailable(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = error_response(503, "Session store unavailable", "SESSION_UNAVAILABLE")
        await response(scope, receive, send)

    def _commit(self, handle: SessionHandle) -> list[str]:
        """Persist the session and return the Set-Cookie values to emit."""
        if handle.degraded:
            return []

        if handle.destroy_requested:
            if not handle.is_new:
                self.store.destroy(handle.id)
            return self._cookie_headers(None)

        if handle.regenerate_requested:
            previous_id = handle.id
            handle.state.id = self.store.generate_id()
            if not handle.is_new:
                self.store.destroy(previous_id)
            handle.state = self.store.save(handle.state)
            return self._cookie_headers(handle.id)

        if handle.is_new or handle.modified:
            handle.state = self.store.save(handle.state)
            return self._cookie_headers(handle.id)

        return []

    def _cookie_headers(self, session_id: str | None) -> list[str]:
        response = Response()
        if session_id is None:
            response.delete_cookie(
                self.cookie_name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
        else:
            response.set_cookie(
                self.cookie_name,
                sign(session_id, self.secret),
                max_age=self.max_age,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
        return [
            value.decode("latin-1")
            for key, value in response.raw_headers
            if key == b"set-cookie"
        ]

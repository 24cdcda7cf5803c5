from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool
from starlette.types import ASGIApp, Receive, Send

from webgate.errors import PrincipalLookupError, PrincipalNotFound
from webgate.pipeline.state import (
    PRINCIPAL_KEY,
    Scope,
    client_disconnected,
    error_response,
    request_state,
    session_handle,
)
from webgate.principals.models import ANONYMOUS
from webgate.principals.serializer import PrincipalSerializer

logger = logging.getLogger(__name__)


class AuthenticationMiddleware:
    """Rehydrate the session's principal reference onto ``request.state.principal``.

    A reference whose principal no longer exists is dropped from the session
    and the request continues as ``ANONYMOUS``. A failing principal store
    rejects the request with 503.
    """

    def __init__(self, app: ASGIApp, serializer: PrincipalSerializer) -> None:
        self.app = app
        self.serializer = serializer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        handle = session_handle(scope)
        reference = handle.data.principal_id
        principal = ANONYMOUS
        if reference is not None:
            if await client_disconnected(scope):
                logger.debug("Client disconnected; skipping principal lookup")
                return
            try:
                principal = await run_in_threadpool(self.serializer.deserialize, reference)
            except PrincipalNotFound:
                logger.info("Principal %s no longer exists; continuing as anonymous", reference)
                handle.data.principal_id = None
            except PrincipalLookupError as exc:
                logger.error("Principal lookup failed: %s", exc)
                response = error_response(
                    503, "Authentication backend unavailable", "PRINCIPAL_UNAVAILABLE"
                )
                await response(scope, receive, send)
                return

        request_state(scope)[PRINCIPAL_KEY] = principal
        await self.app(scope, receive, send)

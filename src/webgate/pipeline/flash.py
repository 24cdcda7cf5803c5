from __future__ import annotations

from starlette.types import ASGIApp, Receive, Send

from webgate.pipeline.state import FLASH_KEY, Scope, request_state, session_handle
from webgate.session_store.record_ops import pop_flash


class FlashMiddleware:
    """Move one-shot notices left by the previous request onto ``request.state.flash``."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        handle = session_handle(scope)
        notices = pop_flash(handle.data) if handle.data.flash else {}
        request_state(scope)[FLASH_KEY] = notices
        await self.app(scope, receive, send)

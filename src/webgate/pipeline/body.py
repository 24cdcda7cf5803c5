from __future__ import annotations

from urllib.parse import parse_qsl

import anyio
from starlette.datastructures import FormData, Headers
from starlette.types import ASGIApp, Message, Receive, Send

from webgate.pipeline.state import (
    DISCONNECT_CHECK_KEY,
    FORM_KEY,
    Scope,
    error_response,
    request_state,
)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
PARAMETER_LIMIT = 1000


def _has_body(headers: Headers) -> bool:
    if "transfer-encoding" in headers:
        return True
    length = headers.get("content-length")
    return length is not None and length.strip() not in ("", "0")


def _media_type(content_type: str) -> tuple[str, str]:
    media_type, *params = content_type.split(";")
    charset = "utf-8"
    for param in params:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset":
            charset = value.strip().strip('"').lower()
    return media_type.strip().lower(), charset


class ReceiveChannel:
    """Wraps ASGI ``receive``: replays buffered messages and can poll for disconnect."""

    def __init__(self, receive: Receive, pending: list[Message] | None = None) -> None:
        self._receive = receive
        self._pending = list(pending or [])
        self._disconnected = False

    async def __call__(self) -> Message:
        if self._pending:
            return self._pending.pop(0)
        message = await self._receive()
        if message["type"] == "http.disconnect":
            self._disconnected = True
        return message

    async def is_disconnected(self) -> bool:
        if self._disconnected:
            return True
        message: Message = {}
        with anyio.CancelScope() as cancel_scope:
            cancel_scope.cancel()
            message = await self._receive()
        if message:
            # Keep it for whoever reads next.
            self._pending.append(message)
            self._disconnected = message["type"] == "http.disconnect"
        return self._disconnected


class FormBodyMiddleware:
    """Parse url-encoded form bodies into ``request.state.form``.

    Only ``application/x-www-form-urlencoded`` in UTF-8 is accepted; any other
    body is rejected instead of being guessed at. The raw body is replayed to
    later stages.
    """

    def __init__(self, app: ASGIApp, limit: int = 100 * 1024) -> None:
        self.app = app
        self.limit = limit

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state = request_state(scope)
        state[FORM_KEY] = FormData()
        headers = Headers(scope=scope)
        if not _has_body(headers):
            channel = ReceiveChannel(receive)
            state[DISCONNECT_CHECK_KEY] = channel.is_disconnected
            await self.app(scope, channel, send)
            return

        media_type, charset = _media_type(headers.get("content-type", ""))
        if media_type != FORM_CONTENT_TYPE:
            response = error_response(
                415, f"Unsupported content type: {media_type or 'none'}", "UNSUPPORTED_MEDIA_TYPE"
            )
            await response(scope, receive, send)
            return
        if charset not in ("utf-8", "utf8"):
            response = error_response(
                415, f"Unsupported charset: {charset}", "UNSUPPORTED_CHARSET"
            )
            await response(scope, receive, send)
            return

        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.limit:
                response = error_response(413, "Request body too large", "BODY_TOO_LARGE")
                await response(scope, receive, send)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        try:
            text = body.decode("utf-8")
            pairs = parse_qsl(text, keep_blank_values=True, max_num_fields=PARAMETER_LIMIT)
        except UnicodeDecodeError:
            response = error_response(400, "Request body is not valid UTF-8", "BAD_BODY")
            await response(scope, receive, send)
            return
        except ValueError:
            response = error_response(413, "Too many form parameters", "TOO_MANY_PARAMETERS")
            await response(scope, receive, send)
            return
        state[FORM_KEY] = FormData(pairs)

        channel = ReceiveChannel(
            receive, [{"type": "http.request", "body": body, "more_body": False}]
        )
        state[DISCONNECT_CHECK_KEY] = channel.is_disconnected
        await self.app(scope, channel, send)

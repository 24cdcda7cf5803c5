from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Send

from webgate.config.logging import ACCESS_LOGGER
from webgate.pipeline.state import Scope

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(ACCESS_LOGGER)

LOG_FORMATS = ("combined", "dev")


class AccessLogMiddleware:
    """One access-log line per response.

    Observational only: a failure while formatting or writing the line never
    affects the response.
    """

    def __init__(self, app: ASGIApp, log_format: str = "dev") -> None:
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unsupported access log format: {log_format!r}")
        self.app = app
        self.log_format = log_format

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        received_at = datetime.now(timezone.utc)
        info: dict[str, int | None] = {"status": None, "length": None, "sent": 0}

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                info["status"] = message["status"]
                length = Headers(raw=message.get("headers", [])).get("content-length")
                if length is not None and length.isdigit():
                    info["length"] = int(length)
            elif message["type"] == "http.response.body":
                info["sent"] = (info["sent"] or 0) + len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            try:
                access_logger.info(self._format(scope, info, received_at, elapsed_ms))
            except Exception:  # noqa: BLE001
                logger.debug("Access log line dropped", exc_info=True)

    def _format(
        self,
        scope: Scope,
        info: dict[str, int | None],
        received_at: datetime,
        elapsed_ms: float,
    ) -> str:
        path = scope.get("path", "")
        query = scope.get("query_string", b"")
        if query:
            path = f"{path}?{query.decode('latin-1')}"
        status = info["status"] if info["status"] is not None else 500
        length = info["length"] if info["length"] is not None else info["sent"]
        length_text = str(length) if length else "-"

        if self.log_format == "dev":
            return f"{scope['method']} {path} {status} {elapsed_ms:.3f} ms - {length_text}"

        headers = Headers(scope=scope)
        client = scope.get("client")
        remote = client[0] if client else "-"
        timestamp = received_at.strftime("%d/%b/%Y:%H:%M:%S %z")
        return (
            f'{remote} - - [{timestamp}] "{scope["method"]} {path} '
            f'HTTP/{scope.get("http_version", "1.1")}" {status} {length_text} '
            f'"{headers.get("referer", "-")}" "{headers.get("user-agent", "-")}"'
        )

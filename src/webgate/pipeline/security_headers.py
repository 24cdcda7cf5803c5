"""Security headers stage.

Headers set here apply to every response produced by a later stage,
including CSRF and session rejections. A header already present on the
response is left alone.
"""

from __future__ import annotations

from typing import Mapping

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Send

from webgate.pipeline.state import Scope

DEFAULT_CSP: dict[str, list[str]] = {
    "base-uri": ["'self'"],
    "default-src": ["'none'"],
    "script-src": [
        "'self'",
        "https://www.google.com/recaptcha/",
        "https://www.gstatic.com/recaptcha/",
    ],
    "style-src": ["'self'", "'unsafe-inline'"],
    "img-src": ["'self'"],
    "connect-src": ["'self'"],
    "font-src": ["'self'"],
    "form-action": ["'self'"],
    "child-src": ["https://www.google.com/recaptcha/"],
    "frame-ancestors": ["'none'"],
}

DEFAULT_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
}


def build_csp(directives: Mapping[str, list[str]]) -> str:
    parts = []
    for directive, sources in directives.items():
        parts.append(" ".join([directive, *sources]) if sources else directive)
    return "; ".join(parts)


class SecurityHeadersMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        csp: Mapping[str, list[str]] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.app = app
        self.headers = dict(DEFAULT_HEADERS if headers is None else headers)
        self.headers["Content-Security-Policy"] = build_csp(
            DEFAULT_CSP if csp is None else csp
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    if name not in response_headers:
                        response_headers[name] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)

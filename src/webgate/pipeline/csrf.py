"""CSRF protection stage.

A random secret lives in the session; each request gets a fresh token derived
from it (``<salt>-<hmac>``), exposed as ``request.state.csrf_token``. Every
request whose method is not GET, HEAD or OPTIONS must send back a token that
verifies against the session secret, either in the ``_csrf`` form field or
query parameter or in one of the ``TOKEN_HEADERS``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets

from starlette.datastructures import FormData, QueryParams
from starlette.types import ASGIApp, Receive, Send

from webgate.pipeline.state import (
    CSRF_TOKEN_KEY,
    FORM_KEY,
    SAFE_METHODS,
    Scope,
    error_response,
    request_state,
    session_handle,
)

logger = logging.getLogger(__name__)

CSRF_FIELD = "_csrf"
TOKEN_HEADERS = (b"csrf-token", b"xsrf-token", b"x-csrf-token", b"x-xsrf-token")
SECRET_BYTES = 18
SALT_BYTES = 8


def generate_secret() -> str:
    return secrets.token_urlsafe(SECRET_BYTES)


def _tokenize(secret: str, salt: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), salt.encode("ascii"), hashlib.sha256).digest()
    return f"{salt}-{base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')}"


def create_token(secret: str) -> str:
    return _tokenize(secret, secrets.token_hex(SALT_BYTES))


def verify_token(secret: str | None, token: str | None) -> bool:
    if not secret or not token or "-" not in token:
        return False
    salt = token.split("-", 1)[0]
    try:
        expected = _tokenize(secret, salt)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected, token)


def token_from_request(scope: Scope) -> str | None:
    form: FormData = request_state(scope).get(FORM_KEY) or FormData()
    token = form.get(CSRF_FIELD)
    if isinstance(token, str) and token:
        return token

    query = QueryParams(scope.get("query_string", b""))
    token = query.get(CSRF_FIELD)
    if token:
        return token

    for name, value in scope.get("headers", []):
        if name in TOKEN_HEADERS and value:
            return value.decode("latin-1")
    return None


class CsrfMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        handle = session_handle(scope)
        if handle.data.csrf_secret is None:
            handle.data.csrf_secret = generate_secret()
        secret = handle.data.csrf_secret
        request_state(scope)[CSRF_TOKEN_KEY] = create_token(secret)

        if scope["method"] not in SAFE_METHODS:
            if not verify_token(secret, token_from_request(scope)):
                logger.warning(
                    "CSRF validation failed for %s %s", scope["method"], scope.get("path", "")
                )
                response = error_response(403, "invalid csrf token", "EBADCSRFTOKEN")
                await response(scope, receive, send)
                return

        await self.app(scope, receive, send)

from __future__ import annotations

import base64
import hashlib
import hmac

SIGNED_PREFIX = "s:"


def _signature(value: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def sign(value: str, secret: str) -> str:
    """Return ``s:<value>.<signature>`` for use as a cookie value."""
    return f"{SIGNED_PREFIX}{value}.{_signature(value, secret)}"


def unsign(cookie: str, secret: str) -> str | None:
    """Return the signed value, or ``None`` when the cookie was tampered with."""
    if not cookie.startswith(SIGNED_PREFIX):
        return None
    value, _, signature = cookie[len(SIGNED_PREFIX) :].rpartition(".")
    if not value or not signature:
        return None
    if not hmac.compare_digest(signature, _signature(value, secret)):
        return None
    return value

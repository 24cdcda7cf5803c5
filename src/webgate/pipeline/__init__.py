"""Ordered request pipeline.

``build_pipeline`` returns Starlette ``Middleware`` entries outermost first.
The order is part of the security contract: headers are set on every
response from the body parser inwards, the session exists before flash and
CSRF run, and CSRF rejects state-changing requests before authentication.
"""

from __future__ import annotations

from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware

from webgate.config.settings import Settings
from webgate.pipeline.access_log import AccessLogMiddleware
from webgate.pipeline.auth import AuthenticationMiddleware
from webgate.pipeline.body import FormBodyMiddleware
from webgate.pipeline.csrf import CsrfMiddleware
from webgate.pipeline.flash import FlashMiddleware
from webgate.pipeline.gate import StartupGate, StartupGateMiddleware
from webgate.pipeline.security_headers import SecurityHeadersMiddleware
from webgate.pipeline.sessions import SessionMiddleware
from webgate.pipeline.static import StaticAssetsMiddleware
from webgate.principals.serializer import PrincipalSerializer
from webgate.session_store.interface import SessionRepository

STAGE_ORDER = (
    "compression",
    "static",
    "access_log",
    "security_headers",
    "body",
    "session",
    "flash",
    "csrf",
    "authentication",
)


def build_pipeline(
    settings: Settings,
    *,
    gate: StartupGate,
    session_store: SessionRepository,
    serializer: PrincipalSerializer,
) -> list[Middleware]:
    stages = {
        "compression": Middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size),
        "static": Middleware(StaticAssetsMiddleware, directories=settings.static_dirs),
        "access_log": Middleware(
            AccessLogMiddleware,
            log_format="combined" if settings.is_production else "dev",
        ),
        "security_headers": Middleware(SecurityHeadersMiddleware),
        "body": Middleware(FormBodyMiddleware, limit=settings.body_limit_bytes),
        "session": Middleware(
            SessionMiddleware,
            store=session_store,
            secret=settings.session_secret,
            cookie_name=settings.session_cookie_name,
            max_age=settings.session_idle_timeout_seconds,
            secure=settings.https,
            degrade_to_anonymous=settings.session_degrade_to_anonymous,
        ),
        "flash": Middleware(FlashMiddleware),
        "csrf": Middleware(CsrfMiddleware),
        "authentication": Middleware(AuthenticationMiddleware, serializer=serializer),
    }
    return [Middleware(StartupGateMiddleware, gate=gate)] + [
        stages[name] for name in STAGE_ORDER
    ]


__all__ = ["STAGE_ORDER", "StartupGate", "build_pipeline"]

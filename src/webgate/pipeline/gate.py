from __future__ import annotations

import logging
import threading

from starlette.types import ASGIApp, Receive, Send

from webgate.errors import StartupGateClosed
from webgate.migrator.runner import MigrationRunner
from webgate.pipeline.state import Scope, error_response

logger = logging.getLogger(__name__)


def describe_migrations(applied: list[str]) -> str:
    if applied:
        return f"Executed {len(applied)} migration(s): {' '.join(applied)}"
    return "Database was up to date!"


class StartupGate:
    """Stays closed until the migration runner has finished successfully."""

    def __init__(self, runner: MigrationRunner) -> None:
        self._runner = runner
        self._applied: list[str] | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._applied is not None

    @property
    def applied(self) -> list[str]:
        return list(self._applied or [])

    def open(self, *, apply: bool = True) -> list[str]:
        """Run pending migrations (or just verify none are pending) and open.

        ``MigrationError`` propagates and leaves the gate closed.
        """
        with self._lock:
            if self._applied is None:
                if apply:
                    applied = self._runner.apply_pending()
                else:
                    pending = self._runner.status().pending
                    if pending:
                        raise StartupGateClosed(
                            f"Pending migrations: {' '.join(pending)}"
                        )
                    applied = []
                logger.info(describe_migrations(applied))
                self._applied = applied
            return list(self._applied)


class StartupGateMiddleware:
    def __init__(self, app: ASGIApp, gate: StartupGate) -> None:
        self.app = app
        self.gate = gate

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and not self.gate.is_open:
            response = error_response(503, "Server is not ready", "NOT_READY")
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)

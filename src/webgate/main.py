from __future__ import annotations

import argparse
import logging

from webgate.config.database import get_database_config
from webgate.config.logging import configure_logging
from webgate.config.settings import get_settings
from webgate.database.engine import get_engine
from webgate.database.session import build_session_factory
from webgate.errors import MigrationError, SessionStoreError
from webgate.migrator.definitions import load_definitions
from webgate.migrator.runner import MigrationRunner
from webgate.pipeline.gate import StartupGate, describe_migrations

logger = logging.getLogger(__name__)


def _build_runner() -> MigrationRunner:
    config = get_database_config()
    logger.info("Database: %s", config.display_url)
    return MigrationRunner(get_engine(), load_definitions(config.migrations_package))


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.http_host
    port = args.port or settings.http_port

    if args.reload:
        # The factory opens the gate itself during lifespan startup.
        logger.info("Visit %s", settings.origin)
        uvicorn.run(
            "webgate.api:create_app", factory=True, host=host, port=port, reload=True
        )
        return 0

    gate = StartupGate(_build_runner())
    try:
        gate.open()
    except MigrationError as exc:
        logger.error("Migration failed: %s", exc)
        if exc.applied:
            logger.error("Applied before the failure: %s", " ".join(exc.applied))
        return 1

    from webgate.api import create_app

    app = create_app(settings, engine=get_engine(), gate=gate)
    logger.info("Visit %s", settings.origin)
    uvicorn.run(app, host=host, port=port)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the webgate server")
    parser.add_argument("--server", action="store_true", help="Migrate, then start the server")
    parser.add_argument("--host", help="Host to bind the server to")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--reload", action="store_true", help="Enable hot reloading")
    parser.add_argument(
        "--migrate", action="store_true", help="Apply pending migrations and exit"
    )
    parser.add_argument(
        "--migration-status",
        action="store_true",
        help="List applied and pending migrations",
    )
    parser.add_argument(
        "--revert-last",
        action="store_true",
        help="Revert the most recently applied migration",
    )
    parser.add_argument(
        "--purge-sessions",
        action="store_true",
        help="Delete expired sessions and exit",
    )
    args = parser.parse_args(argv)

    configure_logging(get_settings())

    if args.server:
        return _serve(args)

    if args.migrate:
        try:
            applied = _build_runner().apply_pending()
        except MigrationError as exc:
            logger.error("Migration failed: %s", exc)
            return 1
        print(describe_migrations(applied))
        return 0

    if args.migration_status:
        try:
            status = _build_runner().status()
        except MigrationError as exc:
            logger.error("%s", exc)
            return 1
        for name in status.applied:
            print(f"- {name} (applied)")
        for name in status.pending:
            print(f"- {name} (pending)")
        return 0

    if args.revert_last:
        try:
            reverted = _build_runner().revert_last()
        except MigrationError as exc:
            logger.error("Revert failed: %s", exc)
            return 1
        print(f"Reverted {reverted}" if reverted else "Nothing to revert")
        return 0

    if args.purge_sessions:
        from webgate.session_store import build_session_store

        store = build_session_store(get_settings(), build_session_factory(get_engine()))
        try:
            purged = store.purge_expired()
        except SessionStoreError as exc:
            logger.error("Session purge failed: %s", exc)
            return 1
        print(f"Purged {purged} expired session(s)")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

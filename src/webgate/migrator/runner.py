from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from webgate.errors import MigrationError, MigrationOrderError
from webgate.migrator.definitions import MigrationDefinition, ordered
from webgate.migrator.ledger import MigrationLedger
from webgate.models.migration_record import MigrationRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationStatus:
    applied: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)


class MigrationRunner:
    """Apply migration definitions in name order, tracking them in the ledger.

    Each migration and its ledger row share one transaction. Whether the DDL
    inside it is rolled back on failure depends on the backend (PostgreSQL
    yes, SQLite/MySQL no), which is why shipped migrations are written to be
    idempotent.
    """

    def __init__(
        self,
        engine: Engine,
        definitions: Iterable[MigrationDefinition],
        *,
        ledger: MigrationLedger | None = None,
    ) -> None:
        self._engine = engine
        self._definitions = ordered(definitions)
        self._ledger = ledger or MigrationLedger(engine)

    def _checked_applied(self) -> list[str]:
        try:
            self._ledger.ensure()
            applied = self._ledger.applied()
        except SQLAlchemyError as exc:
            raise MigrationError(
                MigrationRecord.__tablename__,
                exc,
                message=f"Migration ledger is unavailable: {exc}",
            ) from exc
        known = [definition.name for definition in self._definitions]
        unknown = [name for name in applied if name not in known]
        if unknown:
            raise MigrationOrderError(
                unknown[0],
                message=f"Ledger contains unknown migration(s): {', '.join(unknown)}",
            )
        if applied != known[: len(applied)]:
            expected = known[: len(applied)]
            missing = next(name for name in expected if name not in applied)
            raise MigrationOrderError(
                missing,
                message=(
                    f"Migration {missing!r} was skipped but later migrations are "
                    "recorded as applied"
                ),
            )
        return applied

    def status(self) -> MigrationStatus:
        applied = self._checked_applied()
        pending = [d.name for d in self._definitions[len(applied) :]]
        return MigrationStatus(applied=applied, pending=pending)

    def _run(
        self,
        connection: Connection,
        operation: Callable[[], None],
    ) -> None:
        context = MigrationContext.configure(connection=connection)
        with Operations.context(context):
            operation()

    def apply_pending(self) -> list[str]:
        """Apply every pending migration in order and return their names.

        Stops at the first failure and raises ``MigrationError`` carrying the
        names applied so far in this run. Returns ``[]`` when up to date.
        """
        applied_before = self._checked_applied()
        pending = self._definitions[len(applied_before) :]
        applied: list[str] = []

        for definition in pending:
            logger.info(
                "Applying migration %s (idempotent=%s)",
                definition.name,
                definition.idempotent,
            )
            try:
                with self._engine.begin() as connection:
                    self._run(connection, definition.up)
                    self._ledger.record(connection, definition.name)
            except Exception as exc:
                logger.error("Migration %s failed: %s", definition.name, exc)
                raise MigrationError(definition.name, exc, applied) from exc
            applied.append(definition.name)

        return applied

    def revert_last(self) -> str | None:
        """Run ``down`` for the most recent migration and drop its ledger row."""
        applied = self._checked_applied()
        if not applied:
            return None

        name = applied[-1]
        definition = next(d for d in self._definitions if d.name == name)
        if definition.down is None:
            raise MigrationError(name, message=f"Migration {name!r} has no downgrade")

        logger.info("Reverting migration %s", name)
        try:
            with self._engine.begin() as connection:
                self._run(connection, definition.down)
                self._ledger.forget(connection, name)
        except Exception as exc:
            raise MigrationError(name, exc) from exc
        return name

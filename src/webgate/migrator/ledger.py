from __future__ import annotations

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Connection, Engine

from webgate.models._time import utc_now
from webgate.models.migration_record import MigrationRecord


class MigrationLedger:
    """Durable record of applied migrations, stored in ``migration_records``.

    The ledger owns its own table; every other table is created by migrations.
    Read/write helpers take a connection so the runner can put the ledger
    write in the same transaction as the migration itself.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def ensure(self) -> None:
        MigrationRecord.__table__.create(bind=self._engine, checkfirst=True)

    def applied(self, connection: Connection | None = None) -> list[str]:
        # Same ordering as definitions.ordered(); SQL collation may differ.
        query = select(MigrationRecord.name)
        if connection is not None:
            return sorted(connection.scalars(query))
        with self._engine.connect() as conn:
            return sorted(conn.scalars(query))

    def record(self, connection: Connection, name: str) -> None:
        connection.execute(
            insert(MigrationRecord).values(name=name, applied_at=utc_now())
        )

    def forget(self, connection: Connection, name: str) -> None:
        connection.execute(delete(MigrationRecord).where(MigrationRecord.name == name))

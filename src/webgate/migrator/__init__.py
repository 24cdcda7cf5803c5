"""Schema migration runner and ledger."""

from webgate.migrator.definitions import MigrationDefinition, load_definitions
from webgate.migrator.ledger import MigrationLedger
from webgate.migrator.runner import MigrationRunner, MigrationStatus

__all__ = [
    "MigrationDefinition",
    "MigrationLedger",
    "MigrationRunner",
    "MigrationStatus",
    "load_definitions",
]

"""Schema migrations, applied in module-name order by ``MigrationRunner``."""

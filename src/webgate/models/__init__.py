from webgate.models.migration_record import MigrationRecord
from webgate.models.session_record import SessionRecord
from webgate.models.user import User

__all__ = ["MigrationRecord", "SessionRecord", "User"]

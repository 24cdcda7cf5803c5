from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from webgate.database.base import Base
from webgate.models._time import utc_now


class MigrationRecord(Base):
    """Ledger row: present iff the named migration has been applied."""

    __tablename__ = "migration_records"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

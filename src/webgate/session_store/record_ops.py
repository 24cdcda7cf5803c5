from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from webgate.models._time import utc_now


class SessionData(BaseModel):
    """Everything a session may carry between requests."""

    flash: dict[str, list[str]] = Field(default_factory=dict)
    csrf_secret: str | None = None
    principal_id: str | None = None


class SessionState(BaseModel):
    id: str
    data: SessionData = Field(default_factory=SessionData)
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utc_now())


def new_state(session_id: str) -> SessionState:
    return SessionState(id=session_id)


def next_expiry(idle_timeout: timedelta) -> datetime:
    return utc_now() + idle_timeout


def dump_data(data: SessionData) -> str:
    return data.model_dump_json()


def load_data(payload: str) -> SessionData:
    return SessionData.model_validate_json(payload)


def add_flash(data: SessionData, category: str, message: str) -> None:
    data.flash.setdefault(category, []).append(message)


def pop_flash(data: SessionData) -> dict[str, list[str]]:
    notices = data.flash
    data.flash = {}
    return notices

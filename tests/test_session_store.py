"""Session store tests.

Tests cover:
- Save/load round trips and expiry refresh
- Expired and destroyed sessions reading as absent
- Purging expired rows
- Backend failures surfacing as SessionStoreError
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from webgate.api import purge_sessions_periodically
from webgate.database.session import session_scope
from webgate.errors import SessionStoreError
from webgate.models._time import utc_now
from webgate.models.session_record import SessionRecord
from webgate.session_store import record_ops
from webgate.session_store.cookies import sign, unsign
from webgate.session_store.db_store import DbSessionStore
from webgate.session_store.record_ops import SessionData, add_flash, pop_flash


@pytest.fixture
def store(migrated_engine, session_factory):
    return DbSessionStore(session_factory, idle_timeout=timedelta(minutes=30))


def _row_count(session_factory) -> int:
    with session_scope(session_factory) as db:
        return db.scalar(select(func.count()).select_from(SessionRecord))


class TestSaveAndLoad:
    def test_round_trip_keeps_data(self, store):
        state = store.create()
        state.data.principal_id = "42"
        state.data.csrf_secret = "secret"
        add_flash(state.data, "info", "hello")

        saved = store.save(state)
        loaded = store.load(state.id)

        assert loaded is not None
        assert loaded.id == state.id
        assert loaded.data == saved.data
        assert loaded.data.flash == {"info": ["hello"]}

    def test_save_sets_expiry_from_idle_timeout(self, store):
        saved = store.save(store.create())
        loaded = store.load(saved.id)

        assert loaded.expires_at is not None
        assert abs(loaded.expires_at - saved.expires_at) < timedelta(seconds=1)
        assert not loaded.is_expired()

    def test_save_upserts_by_id(self, store, session_factory):
        state = store.create()
        store.save(state)
        state.data.principal_id = "7"
        store.save(state)

        assert store.load(state.id).data.principal_id == "7"
        assert _row_count(session_factory) == 1

    def test_each_save_pushes_expiry_forward(self, store, monkeypatch):
        start = utc_now()
        monkeypatch.setattr(record_ops, "utc_now", lambda: start)
        first = store.save(store.create())

        monkeypatch.setattr(record_ops, "utc_now", lambda: start + timedelta(minutes=10))
        second = store.save(first)

        assert second.expires_at - first.expires_at == timedelta(minutes=10)
        stored = store.load(first.id).expires_at
        assert abs(stored - second.expires_at) < timedelta(seconds=1)

    def test_resaving_an_expired_session_makes_it_visible_again(self, store, monkeypatch):
        monkeypatch.setattr(record_ops, "utc_now", lambda: utc_now() - timedelta(hours=1))
        state = store.save(store.create())
        assert store.load(state.id) is None

        monkeypatch.undo()
        revived = store.save(state)

        assert revived.expires_at > state.expires_at
        assert store.load(state.id) is not None

    def test_unknown_id_is_absent(self, store):
        assert store.load("does-not-exist") is None

    def test_generated_ids_are_unique(self, store):
        ids = {store.generate_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(value) >= 40 for value in ids)

    def test_create_does_not_persist(self, store, session_factory):
        state = store.create()
        assert store.load(state.id) is None
        assert _row_count(session_factory) == 0


class TestExpiryAndDestroy:
    def test_destroy_makes_session_absent(self, store):
        state = store.save(store.create())
        store.destroy(state.id)
        assert store.load(state.id) is None

    def test_expired_session_is_absent(self, migrated_engine, session_factory):
        store = DbSessionStore(session_factory, idle_timeout=timedelta(seconds=-1))
        state = store.save(store.create())

        assert store.load(state.id) is None
        assert _row_count(session_factory) == 1

    def test_purge_removes_only_expired_rows(self, migrated_engine, session_factory):
        expired_store = DbSessionStore(session_factory, idle_timeout=timedelta(seconds=-1))
        live_store = DbSessionStore(session_factory, idle_timeout=timedelta(minutes=5))
        expired_store.save(expired_store.create())
        live = live_store.save(live_store.create())

        assert live_store.purge_expired() == 1
        assert _row_count(session_factory) == 1
        assert live_store.load(live.id) is not None

    def test_unreadable_payload_is_absent(self, store, session_factory):
        state = store.save(store.create())
        with session_scope(session_factory) as db:
            db.get(SessionRecord, state.id).data = "{not json"

        assert store.load(state.id) is None


class FlakyPurgeStore(DbSessionStore):
    """Fails its first purge with an unexpected error, then behaves."""

    def __init__(self, session_factory) -> None:
        super().__init__(session_factory, idle_timeout=timedelta(seconds=-1))
        self.purge_calls = 0

    def purge_expired(self) -> int:
        self.purge_calls += 1
        if self.purge_calls == 1:
            raise RuntimeError("unexpected")
        return super().purge_expired()


def _run_purge_task(store, seconds: float = 0.2) -> None:
    async def run_briefly() -> None:
        task = asyncio.create_task(purge_sessions_periodically(store, 0.01))
        await asyncio.sleep(seconds)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(run_briefly())


class TestPeriodicPurge:
    def test_background_task_purges_expired_rows(self, migrated_engine, session_factory):
        store = DbSessionStore(session_factory, idle_timeout=timedelta(seconds=-1))
        store.save(store.create())

        _run_purge_task(store)

        assert _row_count(session_factory) == 0

    def test_unexpected_error_does_not_stop_the_task(self, migrated_engine, session_factory):
        store = FlakyPurgeStore(session_factory)
        store.save(store.create())

        _run_purge_task(store)

        assert store.purge_calls > 1
        assert _row_count(session_factory) == 0


class TestFailures:
    def test_missing_table_raises_store_error(self, engine, session_factory):
        store = DbSessionStore(session_factory)
        with pytest.raises(SessionStoreError):
            store.load("anything")
        with pytest.raises(SessionStoreError):
            store.save(store.create())
        with pytest.raises(SessionStoreError):
            store.destroy("anything")


class TestRecordOps:
    def test_pop_flash_clears_notices(self):
        data = SessionData()
        add_flash(data, "error", "first")
        add_flash(data, "error", "second")

        assert pop_flash(data) == {"error": ["first", "second"]}
        assert data.flash == {}


class TestCookieSigning:
    def test_signed_value_unsigns(self):
        cookie = sign("abc123", "secret")
        assert cookie.startswith("s:")
        assert unsign(cookie, "secret") == "abc123"

    def test_tampered_or_foreign_cookies_are_rejected(self):
        cookie = sign("abc123", "secret")
        assert unsign(cookie, "other-secret") is None
        assert unsign(cookie.replace("abc123", "abc124"), "secret") is None
        assert unsign("abc123", "secret") is None

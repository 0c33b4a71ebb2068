"""
Store tests against a mocked DatabaseManager: conditional writes
report rowcount, create resolves unique-index races, driver errors surface
as PersistenceError.
"""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from shared.config import Settings
from shared.errors import PersistenceError
from shared.models.orm import GameSubscriptionORM
from shared.utils.database import engine_options

from notifier.chat_store import ChatStore
from tracking.store import SubscriptionStore


def _row(**overrides) -> GameSubscriptionORM:
    now = datetime.now(timezone.utc)
    values = dict(
        id=uuid.uuid4(), scope="room-1", game_id="401", team_name="Lakers",
        sport="basketball/nba", user_id=None, last_score_home=80, last_score_away=78,
        last_period=3, is_active=True, version=2, created_at=now, updated_at=now,
    )
    values.update(overrides)
    return GameSubscriptionORM(**values)


class MockDB:
    """DatabaseManager stand-in handing out one MagicMock session per call."""

    def __init__(self) -> None:
        self.sessions: list[MagicMock] = []
        self.next_session = self._new_session

    @staticmethod
    def _new_session() -> MagicMock:
        session = MagicMock()
        session.execute = AsyncMock()
        session.scalar = AsyncMock(return_value=None)
        session.scalars = AsyncMock()
        session.flush = AsyncMock()
        session.get = AsyncMock(return_value=None)
        return session

    @asynccontextmanager
    async def read_session(self):
        session = self.next_session()
        self.sessions.append(session)
        yield session

    @asynccontextmanager
    async def write_session(self):
        session = self.next_session()
        self.sessions.append(session)
        yield session


@pytest.fixture
def db() -> MockDB:
    return MockDB()


def _rowcount(db: MockDB, n: int) -> None:
    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.execute.return_value = MagicMock(rowcount=n)
        return session
    db.next_session = factory


@pytest.mark.asyncio
async def test_update_baseline_claim_won(db: MockDB) -> None:
    _rowcount(db, 1)
    store = SubscriptionStore(db)
    assert await store.update_baseline(uuid.uuid4(), 85, 78, 4, expected_version=2) is True

    stmt = db.sessions[0].execute.await_args.args[0]
    sql = str(stmt)
    assert "version" in sql
    assert "is_active" in sql


@pytest.mark.asyncio
async def test_update_baseline_claim_lost(db: MockDB) -> None:
    _rowcount(db, 0)
    store = SubscriptionStore(db)
    assert await store.update_baseline(uuid.uuid4(), 85, 78, 4, expected_version=2) is False


@pytest.mark.asyncio
async def test_deactivate_reports_whether_flag_flipped(db: MockDB) -> None:
    store = SubscriptionStore(db)
    _rowcount(db, 1)
    assert await store.deactivate(uuid.uuid4()) is True
    _rowcount(db, 0)
    assert await store.deactivate(uuid.uuid4()) is False


@pytest.mark.asyncio
async def test_deactivate_matching_returns_count(db: MockDB) -> None:
    _rowcount(db, 2)
    store = SubscriptionStore(db)
    assert await store.deactivate_matching("room-1", team_pattern="lak") == 2
    assert await store.deactivate_matching("room-1") == 0


@pytest.mark.asyncio
async def test_driver_error_becomes_persistence_error(db: MockDB) -> None:
    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.execute.side_effect = OperationalError("UPDATE", {}, Exception("db down"))
        return session
    db.next_session = factory
    store = SubscriptionStore(db)

    with pytest.raises(PersistenceError):
        await store.update_baseline(uuid.uuid4(), 1, 0, 1)
    with pytest.raises(PersistenceError):
        await store.deactivate(uuid.uuid4())


@pytest.mark.asyncio
async def test_list_active_error_becomes_persistence_error(db: MockDB) -> None:
    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.scalars.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        return session
    db.next_session = factory

    with pytest.raises(PersistenceError):
        await SubscriptionStore(db).list_active()


@pytest.mark.asyncio
async def test_list_active_maps_rows(db: MockDB) -> None:
    rows = [_row(game_id="401"), _row(game_id="402", last_score_home=None)]

    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.scalars.return_value = MagicMock(all=MagicMock(return_value=rows))
        return session
    db.next_session = factory

    subs = await SubscriptionStore(db).list_active("room-1")
    assert [s.game_id for s in subs] == ["401", "402"]
    assert subs[0].has_baseline
    assert not subs[1].has_baseline


@pytest.mark.asyncio
async def test_create_returns_existing_active_subscription(db: MockDB) -> None:
    existing = _row()

    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.scalar.return_value = existing
        return session
    db.next_session = factory

    sub, created = await SubscriptionStore(db).create("room-1", "401", "Lakers", "basketball/nba")
    assert created is False
    assert sub.id == existing.id
    assert len(db.sessions) == 1


@pytest.mark.asyncio
async def test_create_inserts_new_subscription(db: MockDB) -> None:
    sub, created = await SubscriptionStore(db).create("room-1", "401", "Lakers", "basketball/nba", user_id="u1")

    assert created is True
    assert sub.version == 0
    assert not sub.has_baseline
    assert sub.user_id == "u1"
    write = db.sessions[1]
    write.add.assert_called_once()
    write.flush.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_race_returns_winner(db: MockDB) -> None:
    winner = _row(version=0, last_score_home=None, last_score_away=None, last_period=None)
    store = SubscriptionStore(db)

    # find misses, insert hits the unique index, re-read returns the winner
    insert_session = MockDB._new_session()
    insert_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
    reread_session = MockDB._new_session()
    reread_session.scalar.return_value = winner
    ordered = iter([MockDB._new_session(), insert_session, reread_session])
    db.next_session = lambda: next(ordered)

    sub, created = await store.create("room-1", "401", "Lakers", "basketball/nba")
    assert created is False
    assert sub.id == winner.id


@pytest.mark.asyncio
async def test_get_error_becomes_persistence_error(db: MockDB) -> None:
    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        return session
    db.next_session = factory

    with pytest.raises(PersistenceError):
        await SubscriptionStore(db).get(uuid.uuid4())


@pytest.mark.asyncio
async def test_get_maps_row_or_none(db: MockDB) -> None:
    row = _row(game_id="405")
    store = SubscriptionStore(db)
    assert await store.get(row.id) is None

    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.get.return_value = row
        return session
    db.next_session = factory
    found = await store.get(row.id)
    assert found is not None and found.game_id == "405"


# ── Chat store reads ────────────────────────────────────────────────────

def _failing_reads(db: MockDB) -> None:
    def factory() -> MagicMock:
        session = MockDB._new_session()
        session.scalar.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        session.scalars.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        return session
    db.next_session = factory


@pytest.mark.asyncio
async def test_chat_store_read_errors_become_persistence_error(db: MockDB) -> None:
    _failing_reads(db)
    chat = ChatStore(db)

    with pytest.raises(PersistenceError):
        await chat.list_messages("room-1")
    with pytest.raises(PersistenceError):
        await chat.notification_recipients("room-1", exclude_user_id="u1")
    with pytest.raises(PersistenceError):
        await chat.get_preference("u1", "room-1")


@pytest.mark.asyncio
async def test_missing_preference_defaults_to_enabled(db: MockDB) -> None:
    pref = await ChatStore(db).get_preference("u1", "room-1")
    assert pref.notifications_enabled is True
    assert (pref.user_id, pref.scope) == ("u1", "room-1")


def test_engine_options_follow_pool_settings() -> None:
    options = engine_options(Settings(db_pool_min=2, db_pool_max=10, db_command_timeout=15))
    assert options["pool_size"] == 2
    assert options["max_overflow"] == 8
    assert options["pool_pre_ping"] is True
    assert options["connect_args"] == {"command_timeout": 15}
    assert engine_options(Settings(db_pool_min=5, db_pool_max=3))["max_overflow"] == 0

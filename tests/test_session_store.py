"""Tests shared by the SQLite store and the in-memory repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from dawn_protocol.billing.entitlement import Plan, Subscription
from dawn_protocol.scoring.reaction import compute_reaction_score
from dawn_protocol.sessions.models import Session
from dawn_protocol.sessions.repository import (
    InMemorySessionRepository,
    SessionRepository,
    advance_day_index,
    soft_prompt_due,
)
from dawn_protocol.storage.session_store import SqliteSessionStore


@pytest.fixture(params=["sqlite", "memory"])
def repo(request):
    if request.param == "sqlite":
        return request.getfixturevalue("store")
    return request.getfixturevalue("memory_repo")


def completed_session(device_id: str, day_index: int, make_samples, pre=400, post=300) -> Session:
    session = Session(
        device_id=device_id,
        context="standard",
        protocol_id=f"standard-day{day_index}",
        day_index=day_index,
    )
    session.record_pre_test(compute_reaction_score(make_samples(pre)))
    session.record_post_test(compute_reaction_score(make_samples(post)))
    session.complete(datetime(2026, 3, 1 + day_index, 7, 0))
    return session


class TestDayIndexRules:
    def test_completed_session_advances(self) -> None:
        session = Session(device_id="d", context="standard", protocol_id="p", day_index=2)
        session.complete()
        assert advance_day_index(2, session) == 3
        assert advance_day_index(0, session) == 3

    def test_never_goes_backwards(self) -> None:
        session = Session(device_id="d", context="standard", protocol_id="p", day_index=1)
        session.complete()
        assert advance_day_index(5, session) == 5

    def test_open_session_does_not_advance(self) -> None:
        session = Session(device_id="d", context="standard", protocol_id="p", day_index=0)
        assert advance_day_index(0, session) == 0


class TestSoftPromptRule:
    now = datetime(2026, 3, 2, 8, 0)

    def test_needs_a_completed_session(self) -> None:
        assert not soft_prompt_due(0, False, None, self.now, 24)
        assert soft_prompt_due(1, False, None, self.now, 24)

    def test_not_after_migration(self) -> None:
        assert not soft_prompt_due(3, True, None, self.now, 24)

    def test_cooldown_after_dismissal(self) -> None:
        assert not soft_prompt_due(3, False, self.now - timedelta(hours=23), self.now, 24)
        assert soft_prompt_due(3, False, self.now - timedelta(hours=24), self.now, 24)


class TestRepository:
    async def test_satisfies_protocol(self, repo) -> None:
        assert isinstance(repo, SessionRepository)

    async def test_device_id_is_stable(self, repo) -> None:
        first = await repo.get_device_id()
        assert first
        assert await repo.get_device_id() == first

    async def test_save_and_get(self, repo, make_samples) -> None:
        device_id = await repo.get_device_id()
        session = completed_session(device_id, 0, make_samples)
        await repo.save_session(session)

        loaded = await repo.get_session(session.id)
        assert loaded == session
        assert loaded.reaction_pre_events[0].reaction_time_ms == 400
        assert await repo.get_session("missing") is None

    async def test_update_in_place(self, repo, make_samples) -> None:
        session = Session(
            device_id=await repo.get_device_id(),
            context="gentle",
            protocol_id="gentle-day0",
            day_index=0,
        )
        await repo.save_session(session)
        assert await repo.get_completed_sessions() == []
        assert await repo.get_day_index() == 0

        session.record_pre_test(compute_reaction_score(make_samples(350)))
        session.record_pre_energy(2)
        session.complete(datetime(2026, 3, 1, 7, 0))
        await repo.save_session(session)

        completed = await repo.get_completed_sessions()
        assert [s.id for s in completed] == [session.id]
        assert completed[0].energy_pre == 2
        assert completed[0].minutes_saved_est == 0
        assert await repo.get_day_index() == 1

    async def test_day_index_follows_completed_sessions(self, repo, make_samples) -> None:
        device_id = await repo.get_device_id()
        for day in range(3):
            await repo.save_session(completed_session(device_id, day, make_samples))
        assert await repo.get_day_index() == 3

        # a late save for an earlier day does not move the counter back
        await repo.save_session(completed_session(device_id, 0, make_samples))
        assert await repo.get_day_index() == 3

    async def test_saved_copy_is_detached(self, repo, make_samples) -> None:
        session = completed_session(await repo.get_device_id(), 0, make_samples)
        await repo.save_session(session)
        session.energy_post = 5
        loaded = await repo.get_session(session.id)
        assert loaded.energy_post is None

    async def test_last_n_sessions_oldest_first(self, repo, make_samples) -> None:
        device_id = await repo.get_device_id()
        ids = []
        for day in range(5):
            session = completed_session(device_id, day, make_samples)
            ids.append(session.id)
            await repo.save_session(session)
        await repo.save_session(
            Session(device_id=device_id, context="standard", protocol_id="p", day_index=5)
        )

        last = await repo.get_last_n_sessions(3)
        assert [s.id for s in last] == ids[-3:]
        assert await repo.get_last_n_sessions(0) == []
        assert len(await repo.get_last_n_sessions(10)) == 5

    async def test_entitlement_defaults_to_free(self, repo) -> None:
        assert await repo.get_entitlement() is Plan.FREE

    async def test_entitlement_from_subscription(self, repo) -> None:
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        await repo.set_subscription(Subscription(plan=Plan.PRO, status="active"))
        assert await repo.get_entitlement(now) is Plan.PRO

        await repo.set_subscription(
            Subscription(
                plan=Plan.PLUS,
                status="canceled",
                current_period_end=now + timedelta(days=3),
                cancel_at_period_end=True,
            )
        )
        assert await repo.get_entitlement(now) is Plan.PLUS
        assert await repo.get_entitlement(now + timedelta(days=4)) is Plan.FREE

    async def test_soft_prompt(self, repo, make_samples) -> None:
        now = datetime(2026, 3, 5, 9, 0)
        assert not await repo.should_show_soft_prompt(now)

        await repo.save_session(completed_session(await repo.get_device_id(), 0, make_samples))
        assert await repo.should_show_soft_prompt(now)

        await repo.mark_soft_prompt_dismissed(now)
        assert not await repo.should_show_soft_prompt(now + timedelta(hours=1))
        assert await repo.should_show_soft_prompt(now + timedelta(hours=25))

        await repo.mark_migrated()
        assert not await repo.should_show_soft_prompt(now + timedelta(days=7))

    async def test_migration_set(self, repo, make_samples) -> None:
        device_id = await repo.get_device_id()
        await repo.save_session(completed_session(device_id, 0, make_samples))
        await repo.save_session(
            Session(device_id=device_id, context="standard", protocol_id="p", day_index=1)
        )
        assert len(await repo.get_sessions_for_migration()) == 2

        await repo.mark_migrated()
        assert await repo.get_sessions_for_migration() == []

    async def test_clear_sessions(self, repo, make_samples) -> None:
        device_id = await repo.get_device_id()
        await repo.save_session(completed_session(device_id, 0, make_samples))
        await repo.clear_sessions()
        assert await repo.get_completed_sessions() == []
        assert await repo.get_day_index() == 0
        assert await repo.get_device_id() == device_id


class TestSqliteStore:
    async def test_state_survives_reconnect(self, db, make_samples) -> None:
        store = SqliteSessionStore(db)
        device_id = await store.get_device_id()
        session = completed_session(device_id, 0, make_samples)
        await store.save_session(session)
        await db.close()

        await db.connect()
        reopened = SqliteSessionStore(db)
        assert await reopened.get_device_id() == device_id
        assert await reopened.get_day_index() == 1
        assert (await reopened.get_session(session.id)) == session

    async def test_raw_events_stored_per_timing(self, db, make_samples) -> None:
        store = SqliteSessionStore(db)
        session = completed_session(await store.get_device_id(), 0, make_samples)
        await store.save_session(session)
        await store.save_session(session)

        rows = await db.fetch_all(
            "SELECT timing, score FROM reaction_tests WHERE session_id = ? ORDER BY timing",
            (session.id,),
        )
        assert rows == [
            {"timing": "post", "score": session.reaction_post_score},
            {"timing": "pre", "score": session.reaction_pre_score},
        ]

    async def test_failed_save_leaves_nothing_behind(self, db, make_samples, monkeypatch) -> None:
        store = SqliteSessionStore(db)
        session = completed_session(await store.get_device_id(), 0, make_samples)

        async def disk_full(key, value):
            raise RuntimeError("disk full")

        monkeypatch.setattr(db, "set_state", disk_full)
        with pytest.raises(RuntimeError):
            await store.save_session(session)
        monkeypatch.undo()

        assert await store.get_session(session.id) is None
        assert await db.fetch_all("SELECT * FROM reaction_tests") == []
        assert await store.get_day_index() == 0

        await store.save_session(session)
        assert await store.get_day_index() == 1

    async def test_transaction_rolls_back_on_error(self, db) -> None:
        with pytest.raises(ValueError):
            async with db.transaction():
                await db.set_state("scratch", "1")
                raise ValueError("abort")

        assert await db.get_state("scratch") is None
        await db.set_state("scratch", "2")
        assert await db.get_state("scratch") == "2"

    async def test_database_is_healthy(self, db) -> None:
        assert db.is_connected
        assert await db.check_integrity()


class TestInMemoryRepository:
    async def test_fixed_device_id(self) -> None:
        repo = InMemorySessionRepository(device_id="abc")
        assert await repo.get_device_id() == "abc"

    async def test_generated_device_id(self) -> None:
        assert await InMemorySessionRepository().get_device_id()

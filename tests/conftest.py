from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from dawn_protocol.core.config import Config
from dawn_protocol.scoring.reaction import ReactionSample
from dawn_protocol.sessions.repository import InMemorySessionRepository
from dawn_protocol.storage.database import Database
from dawn_protocol.storage.session_store import SqliteSessionStore


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
async def db(config: Config) -> AsyncIterator[Database]:
    database = Database(config.db_path)
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def store(db: Database) -> SqliteSessionStore:
    return SqliteSessionStore(db)


@pytest.fixture
def memory_repo() -> InMemorySessionRepository:
    return InMemorySessionRepository(device_id="device-test")


@pytest.fixture
def make_samples() -> Callable[..., list[ReactionSample]]:
    def _make(*times_ms: float) -> list[ReactionSample]:
        return [
            ReactionSample.from_reaction_time(t, shown_at=1_000_000 + i * 2000)
            for i, t in enumerate(times_ms)
        ]

    return _make

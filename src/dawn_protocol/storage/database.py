"""SQLite database management with WAL mode."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Device-local state (device id, day index, prompt flags)
CREATE TABLE IF NOT EXISTS local_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Morning sessions
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    device_id TEXT NOT NULL,
    user_id TEXT,
    started_at DATETIME NOT NULL,
    wake_time_reported DATETIME,
    context TEXT NOT NULL DEFAULT 'standard',
    protocol_id TEXT NOT NULL,
    day_index INTEGER NOT NULL DEFAULT 0,
    completed_at DATETIME,
    reaction_pre_score INTEGER,
    reaction_post_score INTEGER,
    energy_pre INTEGER,
    energy_post INTEGER,
    minutes_saved_est INTEGER,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sessions_device ON sessions(device_id);
CREATE INDEX IF NOT EXISTS idx_sessions_completed ON sessions(completed_at);

-- Raw reaction samples per test
CREATE TABLE IF NOT EXISTS reaction_tests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    timing TEXT NOT NULL CHECK (timing IN ('pre', 'post')),
    raw_events JSON NOT NULL,
    score INTEGER,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (session_id, timing)
);

-- Subscription state per device
CREATE TABLE IF NOT EXISTS subscriptions (
    device_id TEXT PRIMARY KEY,
    plan TEXT NOT NULL DEFAULT 'free',
    status TEXT,
    current_period_end DATETIME,
    cancel_at_period_end BOOLEAN DEFAULT FALSE,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
"""


class Database:
    """SQLite database manager with WAL mode."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._transaction_task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Initialize database connection with WAL mode."""
        if self._connection is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None,  # Autocommit mode
        )

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        # Row factory for dict-like access
        self._connection.row_factory = aiosqlite.Row

        await self._init_schema()

        logger.info(f"Database connected: {self.db_path}")

    async def _init_schema(self) -> None:
        """Initialize database schema."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        await self._connection.executescript(SCHEMA)

        async with self._connection.execute(
            "SELECT MAX(version) FROM schema_version"
        ) as cursor:
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] else 0

        if current_version < SCHEMA_VERSION:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info(f"Schema updated to version {SCHEMA_VERSION}")

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Context manager for database transactions.

        Holds the write lock for the whole block; ``execute`` calls made by
        the same task inside the block run without re-acquiring it.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected")

        async with self._lock:
            self._transaction_task = asyncio.current_task()
            await self._connection.execute("BEGIN")
            try:
                yield
                await self._connection.execute("COMMIT")
            except Exception:
                await self._connection.execute("ROLLBACK")
                raise
            finally:
                self._transaction_task = None

    async def execute(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> int:
        """Execute a query and return last row ID."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        if self._transaction_task is not None and self._transaction_task is asyncio.current_task():
            cursor = await self._connection.execute(query, params)
            return cursor.lastrowid or 0

        async with self._lock:
            cursor = await self._connection.execute(query, params)
            return cursor.lastrowid or 0

    async def fetch_one(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        async with self._connection.execute(query, params) as cursor:
            row = await cursor.fetchone()
            if row:
                return dict(row)
            return None

    async def fetch_all(
        self, query: str, params: tuple[Any, ...] = ()
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        async with self._connection.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def upsert(self, table: str, data: dict[str, Any], conflict: str) -> int:
        """Insert a row, updating every other column when ``conflict`` already exists."""
        columns = ", ".join(data.keys())
        placeholders = ", ".join("?" * len(data))
        conflict_columns = {c.strip() for c in conflict.split(",")}
        updates = ", ".join(
            f"{k} = excluded.{k}" for k in data.keys() if k not in conflict_columns
        )
        query = (
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT({conflict}) DO UPDATE SET {updates}"
        )
        return await self.execute(query, tuple(data.values()))

    async def check_integrity(self) -> bool:
        """Check database integrity."""
        if self._connection is None:
            raise RuntimeError("Database not connected")

        async with self._connection.execute("PRAGMA integrity_check") as cursor:
            row = await cursor.fetchone()
            is_ok = row is not None and row[0] == "ok"

        if not is_ok:
            logger.error("Database integrity check failed!")
        return is_ok

    async def get_size_mb(self) -> float:
        """Get database file size in MB."""
        if self.db_path.exists():
            return self.db_path.stat().st_size / (1024 * 1024)
        return 0.0

    # Local state helpers
    async def get_state(self, key: str, default: Any = None) -> Any:
        """Get a local state value."""
        row = await self.fetch_one(
            "SELECT value FROM local_state WHERE key = ?", (key,)
        )
        if row:
            return row["value"]
        return default

    async def set_state(self, key: str, value: Any) -> None:
        """Set a local state value."""
        await self.execute(
            """INSERT INTO local_state (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
               ON CONFLICT(key) DO UPDATE SET value = ?, updated_at = CURRENT_TIMESTAMP""",
            (key, str(value), str(value)),
        )

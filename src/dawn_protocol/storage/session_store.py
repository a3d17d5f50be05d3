"""SQLite-backed session repository for one device."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime

from dawn_protocol.billing.entitlement import Plan, Subscription, resolve_entitlement
from dawn_protocol.sessions.models import Session
from dawn_protocol.sessions.repository import advance_day_index, soft_prompt_due
from dawn_protocol.storage.database import Database

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_id"
DAY_INDEX_KEY = "day_index"
MIGRATED_KEY = "migrated"
SOFT_PROMPT_SHOWN_KEY = "soft_prompt_shown"
SOFT_PROMPT_DISMISSED_AT_KEY = "soft_prompt_dismissed_at"


class SqliteSessionStore:
    """Session history, day counter and prompt flags for the local device.

    Usage:
        db = Database(config.db_path)
        await db.connect()
        store = SqliteSessionStore(db)

        await store.save_session(session)
        day_index = await store.get_day_index()
    """

    def __init__(self, db: Database):
        self.db = db

    async def get_device_id(self) -> str:
        """Device identity, generated on first use."""
        device_id = await self.db.get_state(DEVICE_ID_KEY)
        if device_id is None:
            device_id = str(uuid.uuid4())
            await self.db.set_state(DEVICE_ID_KEY, device_id)
            logger.info(f"Generated device id: {device_id}")
        return device_id

    async def save_session(self, session: Session) -> None:
        """Insert or update a session and advance the day counter when it completes.

        The session row, its raw samples and the day counter are written in
        one transaction.
        """
        async with self.db.transaction():
            await self.db.upsert("sessions", session.to_db_dict(), conflict="id")

            for timing, samples, score in (
                ("pre", session.reaction_pre_events, session.reaction_pre_score),
                ("post", session.reaction_post_events, session.reaction_post_score),
            ):
                if samples is None:
                    continue
                await self.db.upsert(
                    "reaction_tests",
                    {
                        "session_id": session.id,
                        "timing": timing,
                        "raw_events": json.dumps([s.to_dict() for s in samples]),
                        "score": score,
                    },
                    conflict="session_id, timing",
                )

            current = await self.get_day_index()
            advanced = advance_day_index(current, session)
            if advanced != current:
                await self.db.set_state(DAY_INDEX_KEY, advanced)

        if advanced != current:
            logger.info(f"Day index advanced to {advanced}")

    async def _load(self, rows: list[dict]) -> list[Session]:
        sessions = []
        for row in rows:
            tests = await self.db.fetch_all(
                "SELECT timing, raw_events FROM reaction_tests WHERE session_id = ?",
                (row["id"],),
            )
            events = {t["timing"]: t["raw_events"] for t in tests}
            sessions.append(
                Session.from_db_row(row, pre_events=events.get("pre"), post_events=events.get("post"))
            )
        return sessions

    async def get_session(self, session_id: str) -> Session | None:
        row = await self.db.fetch_one("SELECT * FROM sessions WHERE id = ?", (session_id,))
        if row is None:
            return None
        return (await self._load([row]))[0]

    async def get_completed_sessions(self) -> list[Session]:
        """Completed sessions in the order they were first saved."""
        rows = await self.db.fetch_all(
            "SELECT * FROM sessions WHERE completed_at IS NOT NULL ORDER BY rowid"
        )
        return await self._load(rows)

    async def get_last_n_sessions(self, n: int) -> list[Session]:
        if n <= 0:
            return []
        rows = await self.db.fetch_all(
            """SELECT * FROM (
                   SELECT rowid AS _order, * FROM sessions
                   WHERE completed_at IS NOT NULL
                   ORDER BY rowid DESC LIMIT ?
               ) ORDER BY _order""",
            (n,),
        )
        for row in rows:
            row.pop("_order", None)
        return await self._load(rows)

    async def get_day_index(self) -> int:
        return int(await self.db.get_state(DAY_INDEX_KEY, 0))

    async def get_entitlement(self, now: datetime | None = None) -> Plan:
        device_id = await self.get_device_id()
        row = await self.db.fetch_one(
            "SELECT * FROM subscriptions WHERE device_id = ?", (device_id,)
        )
        subscription = Subscription.from_db_row(row) if row else None
        return resolve_entitlement(subscription, now)

    async def set_subscription(self, subscription: Subscription) -> None:
        device_id = await self.get_device_id()
        data = subscription.to_dict()
        data["device_id"] = device_id
        await self.db.upsert("subscriptions", data, conflict="device_id")
        logger.info(f"Subscription updated: {subscription.plan.value} ({subscription.status})")

    async def should_show_soft_prompt(
        self, now: datetime | None = None, cooldown_hours: int = 24
    ) -> bool:
        row = await self.db.fetch_one(
            "SELECT COUNT(*) AS count FROM sessions WHERE completed_at IS NOT NULL"
        )
        dismissed = await self.db.get_state(SOFT_PROMPT_DISMISSED_AT_KEY)
        migrated = await self.db.get_state(MIGRATED_KEY, "0") == "1"
        return soft_prompt_due(
            row["count"] if row else 0,
            migrated,
            datetime.fromisoformat(dismissed) if dismissed else None,
            now or datetime.now(),
            cooldown_hours,
        )

    async def mark_soft_prompt_dismissed(self, now: datetime | None = None) -> None:
        await self.db.set_state(SOFT_PROMPT_SHOWN_KEY, "1")
        await self.db.set_state(SOFT_PROMPT_DISMISSED_AT_KEY, (now or datetime.now()).isoformat())

    async def mark_migrated(self) -> None:
        await self.db.set_state(MIGRATED_KEY, "1")

    async def get_sessions_for_migration(self) -> list[Session]:
        if await self.db.get_state(MIGRATED_KEY, "0") == "1":
            return []
        rows = await self.db.fetch_all("SELECT * FROM sessions ORDER BY rowid")
        return await self._load(rows)

    async def clear_sessions(self) -> None:
        """Delete session history and reset the day counter."""
        async with self.db.transaction():
            await self.db.execute("DELETE FROM reaction_tests")
            await self.db.execute("DELETE FROM sessions")
            await self.db.set_state(DAY_INDEX_KEY, 0)
        logger.info("Cleared local session history")

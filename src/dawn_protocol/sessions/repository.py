"""Session repository interface and an in-memory implementation."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from dawn_protocol.billing.entitlement import Plan, Subscription, resolve_entitlement
from dawn_protocol.sessions.models import Session

logger = logging.getLogger(__name__)


def advance_day_index(current: int, session: Session) -> int:
    """Day index after saving ``session``.

    Completing a session at or past the current day moves the counter to the
    day after it. Anything else leaves the counter alone, so it never goes
    backwards.
    """
    if session.is_completed and session.day_index >= current:
        return session.day_index + 1
    return current


def soft_prompt_due(
    completed_count: int,
    migrated: bool,
    dismissed_at: datetime | None,
    now: datetime,
    cooldown_hours: int,
) -> bool:
    """Whether to suggest creating an account to keep local history."""
    if dismissed_at is not None and now - dismissed_at < timedelta(hours=cooldown_hours):
        return False
    return completed_count >= 1 and not migrated


@runtime_checkable
class SessionRepository(Protocol):
    """Persistence collaborator for sessions owned by one device identity."""

    async def get_device_id(self) -> str: ...

    async def save_session(self, session: Session) -> None: ...

    async def get_session(self, session_id: str) -> Session | None: ...

    async def get_completed_sessions(self) -> list[Session]: ...

    async def get_last_n_sessions(self, n: int) -> list[Session]: ...

    async def get_day_index(self) -> int: ...

    async def get_entitlement(self, now: datetime | None = None) -> Plan: ...

    async def set_subscription(self, subscription: Subscription) -> None: ...

    async def should_show_soft_prompt(
        self, now: datetime | None = None, cooldown_hours: int = 24
    ) -> bool: ...

    async def mark_soft_prompt_dismissed(self, now: datetime | None = None) -> None: ...

    async def mark_migrated(self) -> None: ...

    async def get_sessions_for_migration(self) -> list[Session]: ...

    async def clear_sessions(self) -> None: ...


class InMemorySessionRepository:
    """Keeps sessions in process memory; used for anonymous runs and tests."""

    def __init__(self, device_id: str | None = None):
        self.device_id = device_id or str(uuid.uuid4())
        self._sessions: list[Session] = []
        self._day_index = 0
        self._subscription: Subscription | None = None
        self._migrated = False
        self._soft_prompt_dismissed_at: datetime | None = None

    async def get_device_id(self) -> str:
        return self.device_id

    async def save_session(self, session: Session) -> None:
        stored = copy.deepcopy(session)
        for i, existing in enumerate(self._sessions):
            if existing.id == session.id:
                self._sessions[i] = stored
                break
        else:
            self._sessions.append(stored)

        self._day_index = advance_day_index(self._day_index, session)

    async def get_session(self, session_id: str) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return copy.deepcopy(session)
        return None

    async def get_completed_sessions(self) -> list[Session]:
        return [copy.deepcopy(s) for s in self._sessions if s.is_completed]

    async def get_last_n_sessions(self, n: int) -> list[Session]:
        if n <= 0:
            return []
        return (await self.get_completed_sessions())[-n:]

    async def get_day_index(self) -> int:
        return self._day_index

    async def get_entitlement(self, now: datetime | None = None) -> Plan:
        return resolve_entitlement(self._subscription, now)

    async def set_subscription(self, subscription: Subscription) -> None:
        self._subscription = subscription

    async def should_show_soft_prompt(
        self, now: datetime | None = None, cooldown_hours: int = 24
    ) -> bool:
        completed = sum(1 for s in self._sessions if s.is_completed)
        return soft_prompt_due(
            completed,
            self._migrated,
            self._soft_prompt_dismissed_at,
            now or datetime.now(),
            cooldown_hours,
        )

    async def mark_soft_prompt_dismissed(self, now: datetime | None = None) -> None:
        self._soft_prompt_dismissed_at = now or datetime.now()

    async def mark_migrated(self) -> None:
        self._migrated = True

    async def get_sessions_for_migration(self) -> list[Session]:
        if self._migrated:
            return []
        return [copy.deepcopy(s) for s in self._sessions]

    async def clear_sessions(self) -> None:
        self._sessions = []
        self._day_index = 0
        logger.info("Cleared in-memory session history")

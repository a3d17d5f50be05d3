"""Cloud sync module for migrating local sessions to the remote session store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import aiohttp

from dawn_protocol.core.config import Config
from dawn_protocol.sessions.models import Session
from dawn_protocol.sessions.repository import SessionRepository
from dawn_protocol.sessions.schemas import SessionCompleteResponse, SessionSyncPayload

logger = logging.getLogger(__name__)


class CloudSync:
    """Pushes sessions recorded on this device to the remote session store.

    Every local session is sent once with ``is_migration`` set. The store is
    marked migrated only when all of them were accepted, so a failed run is
    retried in full next time.
    """

    def __init__(
        self,
        config: Config,
        repository: SessionRepository,
        session_factory: Callable[[], aiohttp.ClientSession] | None = None,
    ):
        self.config = config
        self.repository = repository
        self.api_url = config.sync.cloud_api_url.rstrip("/")
        self._session_factory = session_factory or self._default_session
        self._last_sync: datetime | None = None

    def _default_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.config.sync.timeout_seconds)
        return aiohttp.ClientSession(timeout=timeout)

    async def sync_now(self) -> dict[str, Any]:
        """Push all unmigrated sessions."""
        results: dict[str, Any] = {"synced": [], "errors": []}

        if not self.config.sync.enabled:
            logger.info("Cloud sync is disabled")
            return results

        sessions = await self.repository.get_sessions_for_migration()
        if not sessions:
            logger.info("No sessions to migrate")
            return results

        try:
            async with self._session_factory() as http:
                for session in sessions:
                    try:
                        await self._push_session(http, session)
                        results["synced"].append(session.id)
                    except Exception as e:
                        logger.error(f"Failed to sync session {session.id}: {e}")
                        results["errors"].append(f"{session.id}: {e}")
        except aiohttp.ClientError as e:
            logger.error(f"Network error during sync: {e}")
            results["errors"].append(f"network: {e}")

        if not results["errors"]:
            await self.repository.mark_migrated()
            self._last_sync = datetime.now()
            logger.info(f"Migrated {len(results['synced'])} sessions")

        return results

    async def _push_session(
        self, http: aiohttp.ClientSession, session: Session
    ) -> SessionCompleteResponse:
        """Send one session record."""
        payload = SessionSyncPayload.model_validate(session.to_sync_payload(is_migration=True))

        async with http.post(
            f"{self.api_url}/api/session/complete",
            json=payload.model_dump(mode="json"),
        ) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise RuntimeError(f"Failed to sync session: {resp.status} - {text}")
            return SessionCompleteResponse.model_validate(await resp.json())

    @property
    def status(self) -> dict[str, Any]:
        """Get sync status."""
        return {
            "enabled": self.config.sync.enabled,
            "api_url": self.api_url,
            "last_sync": self._last_sync.isoformat() if self._last_sync else None,
        }

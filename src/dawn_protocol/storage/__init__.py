"""Storage layer for the local session store."""

from dawn_protocol.storage.database import Database
from dawn_protocol.storage.session_store import SqliteSessionStore

__all__ = ["Database", "SqliteSessionStore"]

"""Session records, persistence interface and the session flow."""

from dawn_protocol.sessions.flow import SessionFlow, SessionOutcome, SessionPlan
from dawn_protocol.sessions.models import Session
from dawn_protocol.sessions.repository import InMemorySessionRepository, SessionRepository

__all__ = [
    "InMemorySessionRepository",
    "Session",
    "SessionFlow",
    "SessionOutcome",
    "SessionPlan",
    "SessionRepository",
]

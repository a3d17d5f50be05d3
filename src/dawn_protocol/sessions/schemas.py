"""Pydantic request/response models for the session boundary."""

from __future__ import annotations

from datetime import datetime, time
from typing import Any

from pydantic import BaseModel, Field

from dawn_protocol.protocols.steps import ProtocolContext


class StartSessionRequest(BaseModel):
    """Start a morning session."""
    context: ProtocolContext = ProtocolContext.STANDARD
    wake_time: time | None = None
    maintenance: bool = False


class ReactionEventModel(BaseModel):
    """One recorded tap."""
    timestamp: float
    stimulus_shown_at: float
    reaction_time_ms: float


class SessionSyncPayload(BaseModel):
    """Session record as sent to the remote session store."""
    id: str
    device_id: str
    user_id: str | None = None
    started_at: datetime
    wake_time_reported: datetime | None = None
    context: ProtocolContext
    protocol_id: str
    day_index: int = Field(ge=0)
    completed_at: datetime | None = None
    reaction_pre_score: int | None = None
    reaction_post_score: int | None = None
    energy_pre: int | None = Field(default=None, ge=1, le=5)
    energy_post: int | None = Field(default=None, ge=1, le=5)
    minutes_saved_est: int | None = Field(default=None, ge=0)
    reaction_pre_events: list[ReactionEventModel] | None = None
    reaction_post_events: list[ReactionEventModel] | None = None
    is_migration: bool = False


class SessionStartResponse(BaseModel):
    """Protocol chosen for a new session."""
    session_id: str | None
    protocol: dict[str, Any]
    day_index: int
    requires_paywall: bool = False


class SessionCompleteResponse(BaseModel):
    """Acknowledgement from the remote session store."""
    session_id: str | None = None
    minutes_saved_est: int | None = None
    day_index: int

"""Session record for one test, protocol, test run."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dawn_protocol.protocols.steps import ProtocolContext
from dawn_protocol.scoring.reaction import (
    ReactionSample,
    ReactionTestResult,
    estimate_minutes_saved,
)

MIN_ENERGY_RATING = 1
MAX_ENERGY_RATING = 5


def validate_energy_rating(rating: int) -> int:
    """Return ``rating`` if it is an integer from 1 to 5, else raise ValueError."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValueError(f"Energy rating must be an integer, got {rating!r}")
    if not MIN_ENERGY_RATING <= rating <= MAX_ENERGY_RATING:
        raise ValueError(
            f"Energy rating must be between {MIN_ENERGY_RATING} and {MAX_ENERGY_RATING}, got {rating}"
        )
    return rating


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_events(value: Any) -> list[ReactionSample] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return [ReactionSample.from_dict(e) for e in value]


@dataclass
class Session:
    """One morning session owned by a single device (and optionally a user).

    Created when the session starts with every outcome field empty, filled
    in phase by phase, and finalized once ``completed_at`` is set.
    """

    device_id: str
    context: ProtocolContext
    protocol_id: str
    day_index: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    wake_time_reported: datetime | None = None
    completed_at: datetime | None = None
    reaction_pre_score: int | None = None
    reaction_post_score: int | None = None
    energy_pre: int | None = None
    energy_post: int | None = None
    minutes_saved_est: int | None = None
    reaction_pre_events: list[ReactionSample] | None = None
    reaction_post_events: list[ReactionSample] | None = None

    def __post_init__(self) -> None:
        self.context = ProtocolContext.parse(self.context)
        if self.day_index < 0:
            raise ValueError(f"day_index must be >= 0, got {self.day_index}")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_finalized(self) -> bool:
        return self.completed_at is not None and self.minutes_saved_est is not None

    @property
    def delta(self) -> int | None:
        """Post minus pre score, when both tests were taken."""
        if self.reaction_pre_score is None or self.reaction_post_score is None:
            return None
        return self.reaction_post_score - self.reaction_pre_score

    def _ensure_open(self) -> None:
        if self.is_completed:
            raise ValueError(f"Session {self.id} is already completed")

    def record_pre_test(self, result: ReactionTestResult) -> None:
        self._ensure_open()
        self.reaction_pre_score = result.score
        self.reaction_pre_events = list(result.samples)

    def record_pre_energy(self, rating: int) -> None:
        self._ensure_open()
        self.energy_pre = validate_energy_rating(rating)

    def record_post_test(self, result: ReactionTestResult) -> None:
        self._ensure_open()
        self.reaction_post_score = result.score
        self.reaction_post_events = list(result.samples)

    def record_post_energy(self, rating: int) -> None:
        self._ensure_open()
        self.energy_post = validate_energy_rating(rating)

    def complete(self, now: datetime | None = None) -> None:
        """Finalize the session and estimate minutes saved."""
        self._ensure_open()
        if self.reaction_pre_score is not None and self.reaction_post_score is not None:
            self.minutes_saved_est = estimate_minutes_saved(
                self.reaction_pre_score, self.reaction_post_score, self.day_index
            )
        else:
            self.minutes_saved_est = 0
        self.completed_at = now or datetime.now()

    def skip_post_test(self, now: datetime | None = None) -> None:
        """Finalize without a post test; nothing is credited as saved."""
        self._ensure_open()
        self.minutes_saved_est = 0
        self.completed_at = now or datetime.now()

    @classmethod
    def from_db_row(
        cls,
        row: dict[str, Any],
        pre_events: Any = None,
        post_events: Any = None,
    ) -> Session:
        """Create from database row."""
        return cls(
            id=row["id"],
            device_id=row["device_id"],
            user_id=row.get("user_id"),
            context=ProtocolContext.parse(row.get("context")),
            protocol_id=row.get("protocol_id", ""),
            day_index=row.get("day_index") or 0,
            started_at=_parse_datetime(row.get("started_at")) or datetime.now(),
            wake_time_reported=_parse_datetime(row.get("wake_time_reported")),
            completed_at=_parse_datetime(row.get("completed_at")),
            reaction_pre_score=row.get("reaction_pre_score"),
            reaction_post_score=row.get("reaction_post_score"),
            energy_pre=row.get("energy_pre"),
            energy_post=row.get("energy_post"),
            minutes_saved_est=row.get("minutes_saved_est"),
            reaction_pre_events=_parse_events(pre_events),
            reaction_post_events=_parse_events(post_events),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the sessions table (raw samples are stored separately)."""
        return {
            "id": self.id,
            "device_id": self.device_id,
            "user_id": self.user_id,
            "started_at": self.started_at.isoformat(),
            "wake_time_reported": self.wake_time_reported.isoformat() if self.wake_time_reported else None,
            "context": self.context.value,
            "protocol_id": self.protocol_id,
            "day_index": self.day_index,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "reaction_pre_score": self.reaction_pre_score,
            "reaction_post_score": self.reaction_post_score,
            "energy_pre": self.energy_pre,
            "energy_post": self.energy_post,
            "minutes_saved_est": self.minutes_saved_est,
        }

    def to_sync_payload(self, is_migration: bool = False) -> dict[str, Any]:
        """Full record including raw samples, as sent to the remote store."""
        payload = self.to_db_dict()
        payload["reaction_pre_events"] = (
            [s.to_dict() for s in self.reaction_pre_events]
            if self.reaction_pre_events is not None else None
        )
        payload["reaction_post_events"] = (
            [s.to_dict() for s in self.reaction_post_events]
            if self.reaction_post_events is not None else None
        )
        payload["is_migration"] = is_migration
        return payload

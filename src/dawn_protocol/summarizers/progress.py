"""Progress summary across completed sessions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from dawn_protocol.scoring.reaction import get_recent_deltas
from dawn_protocol.sessions.models import Session

logger = logging.getLogger(__name__)


@dataclass
class ProgressSummary:
    """Dashboard numbers for one identity."""

    sessions: list[Session]
    day_index: int
    streak: int
    total_minutes_saved: int
    average_delta: float | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sessions": [s.to_db_dict() for s in self.sessions],
            "day_index": self.day_index,
            "streak": self.streak,
            "total_minutes_saved": self.total_minutes_saved,
            "average_delta": self.average_delta,
        }


def calculate_streak(completed_at: Iterable[datetime], today: date | None = None) -> int:
    """Count consecutive days with a completed session.

    The streak only counts if the latest session was today or yesterday.
    Several sessions on the same day each add to the count.
    """
    days = sorted((c.date() for c in completed_at), reverse=True)
    if not days:
        return 0

    today = today or date.today()
    if (today - days[0]).days > 1:
        return 0

    streak = 1
    for previous, current in zip(days, days[1:]):
        if (previous - current).days <= 1:
            streak += 1
        else:
            break
    return streak


def summarize_progress(sessions: Sequence[Session], today: date | None = None) -> ProgressSummary:
    """Summarize completed sessions (others are ignored).

    Args:
        sessions: Session history in chronological order.
        today: Reference date for the streak.
    """
    completed = [s for s in sessions if s.completed_at is not None]

    day_index = max(s.day_index for s in completed) + 1 if completed else 0
    deltas = get_recent_deltas(completed)

    return ProgressSummary(
        sessions=completed,
        day_index=day_index,
        streak=calculate_streak((s.completed_at for s in completed), today),
        total_minutes_saved=sum(s.minutes_saved_est or 0 for s in completed),
        average_delta=round(sum(deltas) / len(deltas), 1) if deltas else None,
    )

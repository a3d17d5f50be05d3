"""Reaction-time scoring: alertness score, improvement and minutes saved."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

# A 200ms median scores 1000 points
SCORE_REFERENCE_MS = 200
SCORE_REFERENCE_POINTS = 1000

# Minutes of morning grogginess without the protocol
BASE_GROGGY_MINUTES = 45
MAX_IMPROVEMENT_FACTOR = 0.5
DAY_MULTIPLIER_STEP = 0.05
MAX_DAY_MULTIPLIER = 1.5
MAX_MINUTES_SAVED = 30


def js_round(value: float) -> int | float:
    """Round half up, matching how scores have always been rounded.

    Python's round() rounds halves to even, which would turn 22.5 into 22.
    Infinite values cannot be rounded and are returned unchanged.
    """
    if not math.isfinite(value):
        return value
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class ReactionSample:
    """One measured tap: when the cue appeared and when the user responded (epoch ms)."""

    stimulus_shown_at: float
    responded_at: float

    @property
    def reaction_time_ms(self) -> float:
        return self.responded_at - self.stimulus_shown_at

    @property
    def is_valid(self) -> bool:
        rt = self.reaction_time_ms
        return math.isfinite(rt) and rt > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored event format."""
        return {
            "timestamp": self.responded_at,
            "stimulus_shown_at": self.stimulus_shown_at,
            "reaction_time_ms": self.reaction_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReactionSample:
        """Create from a stored event.

        Older events may lack the response timestamp; it is rebuilt from
        the recorded reaction time.
        """
        shown = data.get("stimulus_shown_at", 0)
        responded = data.get("timestamp")
        if responded is None:
            responded = shown + data.get("reaction_time_ms", 0)
        return cls(stimulus_shown_at=shown, responded_at=responded)

    @classmethod
    def from_reaction_time(cls, reaction_time_ms: float, shown_at: float = 0) -> ReactionSample:
        """Build a sample from a bare reaction time."""
        return cls(stimulus_shown_at=shown_at, responded_at=shown_at + reaction_time_ms)


@dataclass(frozen=True)
class ReactionTestResult:
    """Score and summary statistics for one reaction test."""

    score: int = 0
    median_ms: int = 0
    mean_ms: int = 0
    best_ms: int = 0
    worst_ms: int = 0
    samples: tuple[ReactionSample, ...] = field(default_factory=tuple)

    @property
    def valid_count(self) -> int:
        return sum(1 for s in self.samples if s.is_valid)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "score": self.score,
            "median_ms": self.median_ms,
            "mean_ms": self.mean_ms,
            "best_ms": self.best_ms,
            "worst_ms": self.worst_ms,
            "events": [s.to_dict() for s in self.samples],
        }


@dataclass(frozen=True)
class Improvement:
    """Change between the pre-test and post-test scores."""

    delta: int
    percent_change: int
    improved: bool


def compute_reaction_score(samples: Iterable[ReactionSample]) -> ReactionTestResult:
    """Score a reaction test.

    Samples with a non-positive or non-finite reaction time are ignored. The score is
    inversely proportional to the median reaction time and is not clamped,
    so very fast inputs produce very large scores (up to ``math.inf``).

    Args:
        samples: Measured taps, in the order they were recorded.

    Returns:
        ReactionTestResult; all zeros when no sample is valid.
    """
    samples = tuple(samples)
    times = [s.reaction_time_ms for s in samples if s.is_valid]

    if not times:
        return ReactionTestResult(samples=samples)

    ordered = sorted(times)
    median_ms = ordered[len(ordered) // 2]
    mean_ms = sum(times) / len(times)

    score = js_round((SCORE_REFERENCE_POINTS / median_ms) * SCORE_REFERENCE_MS)

    return ReactionTestResult(
        score=score,
        median_ms=js_round(median_ms),
        mean_ms=js_round(mean_ms),
        best_ms=js_round(ordered[0]),
        worst_ms=js_round(ordered[-1]),
        samples=samples,
    )


def compute_improvement(pre_score: int, post_score: int) -> Improvement:
    """Compare pre and post scores.

    A zero pre-score reports 0% change even when the post-score is positive.
    """
    delta = post_score - pre_score
    percent_change = js_round(delta / pre_score * 100) if pre_score > 0 else 0
    return Improvement(delta=delta, percent_change=percent_change, improved=delta > 0)


def estimate_minutes_saved(pre_score: int, post_score: int, day_index: int) -> int:
    """Estimate grogginess minutes saved by today's protocol.

    Improvement counts for at most 50%, and consistent users get up to a
    1.5x multiplier (reached on day index 10). The result is capped at 30.
    """
    improvement = compute_improvement(pre_score, post_score)
    if not improvement.improved:
        return 0

    improvement_factor = min(improvement.percent_change / 100, MAX_IMPROVEMENT_FACTOR)
    day_multiplier = min(1 + day_index * DAY_MULTIPLIER_STEP, MAX_DAY_MULTIPLIER)

    minutes_saved = js_round(BASE_GROGGY_MINUTES * improvement_factor * day_multiplier)
    return max(0, min(minutes_saved, MAX_MINUTES_SAVED))


class ScoredSession(Protocol):
    reaction_pre_score: int | None
    reaction_post_score: int | None


def get_recent_deltas(sessions: Sequence[ScoredSession]) -> list[int]:
    """Post-minus-pre deltas for sessions that have both scores, oldest first."""
    return [
        s.reaction_post_score - s.reaction_pre_score
        for s in sessions
        if s.reaction_pre_score is not None and s.reaction_post_score is not None
    ]

"""Reaction-time scoring engine."""

from dawn_protocol.scoring.reaction import (
    Improvement,
    ReactionSample,
    ReactionTestResult,
    compute_improvement,
    compute_reaction_score,
    estimate_minutes_saved,
    get_recent_deltas,
)

__all__ = [
    "Improvement",
    "ReactionSample",
    "ReactionTestResult",
    "compute_improvement",
    "compute_reaction_score",
    "estimate_minutes_saved",
    "get_recent_deltas",
]

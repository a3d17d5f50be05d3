"""Summaries of session history."""

from dawn_protocol.summarizers.progress import ProgressSummary, calculate_streak, summarize_progress

__all__ = [
    "ProgressSummary",
    "calculate_streak",
    "summarize_progress",
]

"""
Data models for the tutoring engine.

This module contains core data models:
- ContentUnit / FeedbackSample: transient live-session artifacts
- InteractiveProblem / VisualExplanation: generated learning aids
- LiveSession / SessionSummary: session lifecycle records
- ProgressionLedger / PerSubjectProgress / AchievementRecord / SessionRecord: durable progression
"""

from .content import (
    ContentUnit,
    FeedbackSample,
    InteractiveProblem,
    VisualExplanation,
    clamp_difficulty,
    estimate_minutes,
)
from .progression import (
    AchievementRecord,
    PerSubjectProgress,
    ProgressionLedger,
    ProgressionState,
    SessionRecord,
)
from .session import InteractionResult, LiveSession, SessionSummary

__all__ = [
    "ContentUnit",
    "FeedbackSample",
    "InteractiveProblem",
    "VisualExplanation",
    "clamp_difficulty",
    "estimate_minutes",
    "AchievementRecord",
    "PerSubjectProgress",
    "ProgressionLedger",
    "ProgressionState",
    "SessionRecord",
    "InteractionResult",
    "LiveSession",
    "SessionSummary",
]

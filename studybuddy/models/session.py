"""
Live tutoring session data types.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Set

from .content import ContentUnit, FeedbackSample
from .progression import AchievementRecord, PerSubjectProgress, ProgressionLedger

DifficultyTier = Literal["beginner", "intermediate", "advanced"]
SessionStatus = Literal["active", "ended"]

DIFFICULTY_TIERS = ("beginner", "intermediate", "advanced")


@dataclass
class LiveSession:
    """
    One continuous tutoring interaction for a subject/topic.

    Created and mutated only by the SessionManager. At most one session
    per user is active at a time.
    """
    user_id: str
    subject: str
    topic: str
    difficulty_tier: DifficultyTier
    started_at: datetime
    learning_style: str = "visual"
    is_active: bool = True
    participant_ids: Set[str] = field(default_factory=set)
    ended_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: f"ls-{uuid.uuid4()}")

    def __post_init__(self):
        if self.difficulty_tier not in DIFFICULTY_TIERS:
            raise ValueError(
                f"Unknown difficulty tier '{self.difficulty_tier}', expected one of {DIFFICULTY_TIERS}"
            )
        if not self.participant_ids:
            self.participant_ids = {self.user_id}

    @property
    def status(self) -> SessionStatus:
        return "active" if self.is_active else "ended"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subject": self.subject,
            "topic": self.topic,
            "difficulty_tier": self.difficulty_tier,
            "learning_style": self.learning_style,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "is_active": self.is_active,
            "participant_ids": sorted(self.participant_ids),
        }


@dataclass
class InteractionResult:
    """Outcome of one learner interaction: the next content plus feedback."""
    content: ContentUnit
    feedback: FeedbackSample


@dataclass
class SessionSummary:
    """
    Result of ending a session.

    Attributes:
        session_id: Ended session
        subject: Session subject
        duration_minutes: Elapsed session time
        score: Session score (None when no score exists)
        xp_earned: XP added to the ledger
        interactions: Number of submitted interactions
        problems_answered: Number of answered problems
        problems_correct: Number of correctly answered problems
        subject_progress: Updated progress for the session's subject
        ledger: Ledger snapshot after the update
        unlocked_achievements: Achievements unlocked by this session
    """
    session_id: str
    subject: str
    topic: str
    duration_minutes: int
    score: Optional[int]
    xp_earned: int
    interactions: int
    problems_answered: int
    problems_correct: int
    subject_progress: PerSubjectProgress
    ledger: ProgressionLedger
    unlocked_achievements: List[AchievementRecord] = field(default_factory=list)
    ended_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "session_id": self.session_id,
            "subject": self.subject,
            "topic": self.topic,
            "duration_minutes": self.duration_minutes,
            "score": self.score,
            "xp_earned": self.xp_earned,
            "interactions": self.interactions,
            "problems_answered": self.problems_answered,
            "problems_correct": self.problems_correct,
            "subject_progress": self.subject_progress.to_dict(),
            "ledger": self.ledger.to_dict(),
            "unlocked_achievements": [a.to_dict() for a in self.unlocked_achievements],
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }

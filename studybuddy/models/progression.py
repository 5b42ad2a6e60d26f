"""
Durable per-user progression data: ledger, subject progress and achievements.

The persisted state shape is ProgressionLedger + PerSubjectProgress[]
+ AchievementRecord[] + the most recent SessionRecord[], bundled as
ProgressionState.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

Rarity = Literal["common", "rare", "epic", "legendary"]
AchievementCategory = Literal["learning", "social", "streak", "mastery"]

RARITIES = ("common", "rare", "epic", "legendary")
ACHIEVEMENT_CATEGORIES = ("learning", "social", "streak", "mastery")

# Finished sessions kept in the history, newest first
RECENT_SESSIONS_LIMIT = 10


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


@dataclass
class ProgressionLedger:
    """
    Cumulative study metrics for one user.

    ``level`` is a display field set externally; it is not derived from XP.
    """
    total_study_time_minutes: int = 0
    sessions_completed: int = 0
    total_xp: int = 0
    level: int = 1
    current_streak_days: int = 0
    longest_streak_days: int = 0
    weekly_goal_minutes: int = 300
    weekly_progress_minutes: int = 0
    last_active_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_study_time_minutes": self.total_study_time_minutes,
            "sessions_completed": self.sessions_completed,
            "total_xp": self.total_xp,
            "level": self.level,
            "current_streak_days": self.current_streak_days,
            "longest_streak_days": self.longest_streak_days,
            "weekly_goal_minutes": self.weekly_goal_minutes,
            "weekly_progress_minutes": self.weekly_progress_minutes,
            "last_active_at": self.last_active_at.isoformat() if self.last_active_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProgressionLedger:
        values = dict(data)
        values["last_active_at"] = _parse_datetime(values.get("last_active_at"))
        return cls(**values)


@dataclass
class PerSubjectProgress:
    """Progress and mastery for a single subject."""
    subject: str
    progress_percent: int = 0
    mastery_percent: int = 0
    time_spent_minutes: int = 0
    weak_areas: List[str] = field(default_factory=list)
    strong_areas: List[str] = field(default_factory=list)
    last_studied_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "subject": self.subject,
            "progress_percent": self.progress_percent,
            "mastery_percent": self.mastery_percent,
            "time_spent_minutes": self.time_spent_minutes,
            "weak_areas": list(self.weak_areas),
            "strong_areas": list(self.strong_areas),
            "last_studied_date": (
                self.last_studied_date.isoformat() if self.last_studied_date else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PerSubjectProgress:
        values = dict(data)
        values["last_studied_date"] = _parse_date(values.get("last_studied_date"))
        return cls(**values)


@dataclass
class AchievementRecord:
    """An unlocked achievement. ``id`` is the idempotency key."""
    id: str
    title: str
    description: str
    icon: str
    rarity: Rarity
    category: AchievementCategory
    unlocked_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "rarity": self.rarity,
            "category": self.category,
            "unlocked_at": self.unlocked_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AchievementRecord:
        values = dict(data)
        values["unlocked_at"] = datetime.fromisoformat(values["unlocked_at"])
        return cls(**values)


@dataclass
class SessionRecord:
    """History entry for one finished session."""
    id: str
    subject: str
    duration_minutes: int
    timestamp: datetime
    topics_completed: List[str] = field(default_factory=list)
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "subject": self.subject,
            "duration_minutes": self.duration_minutes,
            "timestamp": self.timestamp.isoformat(),
            "topics_completed": list(self.topics_completed),
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SessionRecord:
        values = dict(data)
        values["timestamp"] = datetime.fromisoformat(values["timestamp"])
        return cls(**values)


@dataclass
class ProgressionState:
    """Everything persisted for one user."""
    ledger: ProgressionLedger = field(default_factory=ProgressionLedger)
    subjects: Dict[str, PerSubjectProgress] = field(default_factory=dict)
    achievements: List[AchievementRecord] = field(default_factory=list)
    recent_sessions: List[SessionRecord] = field(default_factory=list)

    @property
    def achievement_ids(self) -> set[str]:
        return {a.id for a in self.achievements}

    def subject(self, name: str) -> PerSubjectProgress:
        """Get progress for a subject, creating an empty record if needed."""
        if name not in self.subjects:
            self.subjects[name] = PerSubjectProgress(subject=name)
        return self.subjects[name]

    def add_session(self, record: SessionRecord) -> None:
        """Prepend a finished session, keeping only the most recent ones."""
        self.recent_sessions.insert(0, record)
        del self.recent_sessions[RECENT_SESSIONS_LIMIT:]

    def copy(self) -> ProgressionState:
        """Deep copy, used to stage mutations before committing them."""
        return deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        return {
            "ledger": self.ledger.to_dict(),
            "subjects": [p.to_dict() for p in self.subjects.values()],
            "achievements": [a.to_dict() for a in self.achievements],
            "recent_sessions": [s.to_dict() for s in self.recent_sessions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProgressionState:
        subjects = [PerSubjectProgress.from_dict(s) for s in data.get("subjects", [])]
        return cls(
            ledger=ProgressionLedger.from_dict(data.get("ledger", {})),
            subjects={s.subject: s for s in subjects},
            achievements=[AchievementRecord.from_dict(a) for a in data.get("achievements", [])],
            recent_sessions=[SessionRecord.from_dict(s) for s in data.get("recent_sessions", [])],
        )

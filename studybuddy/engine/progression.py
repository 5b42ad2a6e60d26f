"""
Progression ledger math: XP, study time, subject progress, streaks, weekly goal.

All functions here operate on a staged ProgressionState copy; the session
manager commits the copy only after it has been saved.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional

from ..config import config
from ..models.progression import (
    AchievementRecord,
    PerSubjectProgress,
    ProgressionLedger,
    ProgressionState,
    SessionRecord,
)
from .achievements import AchievementRule, SessionOutcome, evaluate_achievements


@dataclass
class SessionRecordResult:
    """Changes produced by recording one finished session."""
    state: ProgressionState
    subject_progress: PerSubjectProgress
    unlocked: List[AchievementRecord]
    xp_earned: int


@dataclass
class WeeklyGoalStatus:
    goal_minutes: int
    progress_minutes: int
    progress_percent: float
    remaining_minutes: int
    days_left: int


def update_streak(ledger: ProgressionLedger, today: date) -> None:
    """
    Advance the daily streak.

    Studied yesterday → +1; already studied today → unchanged; any longer
    gap (or first session) → 1. The longest streak is a ratchet.
    """
    last_day = ledger.last_active_at.date() if ledger.last_active_at else None

    if last_day == today and ledger.current_streak_days > 0:
        pass
    elif last_day is not None and (today - last_day).days == 1:
        ledger.current_streak_days += 1
    else:
        ledger.current_streak_days = 1

    ledger.longest_streak_days = max(ledger.longest_streak_days, ledger.current_streak_days)


def active_streak(ledger: ProgressionLedger, today: date) -> int:
    """Streak as of today: 0 once more than a day has passed without a session."""
    if ledger.last_active_at is None:
        return 0
    if (today - ledger.last_active_at.date()).days > 1:
        return 0
    return ledger.current_streak_days


def apply_subject_progress(
    progress: PerSubjectProgress,
    duration_minutes: int,
    score: Optional[int],
    today: date,
    default_increment: Optional[int] = None,
) -> None:
    """Advance a subject: floor(score/10) points of progress (the default for a missing or zero score), capped at 100."""
    if default_increment is None:
        default_increment = config.progression.default_progress_increment
    increment = score // 10 if score else default_increment
    progress.progress_percent = min(100, progress.progress_percent + increment)
    progress.time_spent_minutes += duration_minutes
    progress.last_studied_date = today


def apply_session_to_ledger(
    ledger: ProgressionLedger,
    duration_minutes: int,
    score: Optional[int],
    now: datetime,
    default_xp: Optional[int] = None,
) -> int:
    """
    Add a finished session to the ledger.

    Returns:
        XP earned (the score, or the default when the score is missing or zero)
    """
    if default_xp is None:
        default_xp = config.progression.default_session_xp
    xp = score if score else default_xp

    ledger.total_study_time_minutes += duration_minutes
    ledger.weekly_progress_minutes += duration_minutes
    ledger.total_xp += xp
    ledger.sessions_completed += 1
    ledger.last_active_at = now
    return xp


def record_session(
    state: ProgressionState,
    outcome: SessionOutcome,
    now: datetime,
    rules: Optional[Iterable[AchievementRule]] = None,
) -> SessionRecordResult:
    """
    Apply a finished session to a copy of the user's progression state.

    Args:
        state: Current state (left untouched)
        outcome: Subject, duration, optional score and topics of the session
        now: Session end time
        rules: Achievement rules (defaults to the shipped rules)

    Returns:
        SessionRecordResult holding the staged state

    Raises:
        ValueError: If the score or duration is out of range
    """
    if outcome.score is not None and not (0 <= outcome.score <= 100):
        raise ValueError(f"Score must be between 0 and 100, got {outcome.score}")
    if outcome.duration_minutes < 0:
        raise ValueError(f"Duration cannot be negative: {outcome.duration_minutes}")

    staged = state.copy()
    today = now.date()

    subject_progress = staged.subject(outcome.subject)
    apply_subject_progress(subject_progress, outcome.duration_minutes, outcome.score, today)

    # Streak compares against the previous activity, so it runs before the ledger update
    update_streak(staged.ledger, today)
    xp = apply_session_to_ledger(staged.ledger, outcome.duration_minutes, outcome.score, now)

    unlocked = evaluate_achievements(outcome, staged.ledger, staged.achievement_ids, now, rules)
    staged.achievements.extend(unlocked)

    staged.add_session(
        SessionRecord(
            id=outcome.session_id or f"ss-{uuid.uuid4()}",
            subject=outcome.subject,
            duration_minutes=outcome.duration_minutes,
            timestamp=now,
            topics_completed=list(outcome.topics_completed),
            score=outcome.score,
        )
    )

    return SessionRecordResult(
        state=staged,
        subject_progress=subject_progress,
        unlocked=unlocked,
        xp_earned=xp,
    )


def weekly_goal_status(ledger: ProgressionLedger, today: date) -> WeeklyGoalStatus:
    """Progress toward the weekly goal; weeks start on Sunday."""
    goal = ledger.weekly_goal_minutes
    progress = ledger.weekly_progress_minutes
    sunday_based_weekday = today.isoweekday() % 7
    return WeeklyGoalStatus(
        goal_minutes=goal,
        progress_minutes=progress,
        progress_percent=round(min(progress / goal * 100, 100.0), 2),
        remaining_minutes=max(goal - progress, 0),
        days_left=7 - sunday_based_weekday,
    )


def reset_weekly_progress(ledger: ProgressionLedger) -> None:
    """Calendar-week boundary reset, triggered by the caller."""
    ledger.weekly_progress_minutes = 0


def set_weekly_goal(ledger: ProgressionLedger, minutes: int) -> None:
    if minutes <= 0:
        raise ValueError(f"Weekly goal must be > 0 minutes, got {minutes}")
    ledger.weekly_goal_minutes = minutes


def set_level(ledger: ProgressionLedger, level: int) -> None:
    """Level is an externally-managed display field."""
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    ledger.level = level

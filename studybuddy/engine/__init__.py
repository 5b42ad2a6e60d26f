"""
Tutoring engine components.

- feedback: heuristic understanding/engagement scoring
- difficulty: difficulty adaptation and content materialization
- achievements: rule engine evaluated at session end
- progression: ledger, streak and weekly goal math
- channel: async feedback subscriptions
- session_manager: per-user session state machine and registry
"""

from .achievements import AchievementRule, SessionOutcome, default_rules, evaluate_achievements
from .channel import FeedbackChannel, FeedbackSubscription
from .difficulty import DifficultyController, determine_content_type, next_difficulty
from .progression import WeeklyGoalStatus, record_session, update_streak, weekly_goal_status
from .session_manager import SessionManager, TutoringEngine

__all__ = [
    "AchievementRule",
    "SessionOutcome",
    "default_rules",
    "evaluate_achievements",
    "FeedbackChannel",
    "FeedbackSubscription",
    "DifficultyController",
    "determine_content_type",
    "next_difficulty",
    "WeeklyGoalStatus",
    "record_session",
    "update_streak",
    "weekly_goal_status",
    "SessionManager",
    "TutoringEngine",
]

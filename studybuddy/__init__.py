"""
StudyBuddy - adaptive tutoring and progression engine.

Drives live tutoring sessions (content adaptation, feedback scoring) and
maintains each learner's durable progression ledger (XP, streaks, weekly
goal, achievements).
"""

__version__ = "0.1.0"

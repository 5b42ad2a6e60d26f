"""
Custom exceptions for the StudyBuddy tutoring engine.
"""

from typing import Optional


class StudyBuddyError(Exception):
    """Base exception class for all engine errors."""


# --- Session lifecycle errors (caller misuse, never retried) ---
class SessionError(StudyBuddyError):
    """Raised when a session operation is issued in the wrong state."""

    user_message = "session error"

    def __init__(self, user_id: str, session_id: Optional[str] = None, message: Optional[str] = None):
        self.user_id = user_id
        self.session_id = session_id
        super().__init__(message or f"{self.user_message} (user={user_id}, session={session_id})")


class SessionAlreadyActiveError(SessionError):
    """Raised when starting a session while another one is still active."""

    user_message = "session already running"


class NoActiveSessionError(SessionError):
    """Raised when interacting without an active session."""

    user_message = "no session to interact with"


# --- External collaborator errors ---
class ContentGenerationFailure(StudyBuddyError):
    """Raised by content generators; recovered locally with fallback content."""


class PersistenceFailure(StudyBuddyError):
    """Raised when progression state cannot be loaded or saved."""

    user_message = "could not save progress, your session continues unaffected"

    def __init__(self, message: str, user_id: Optional[str] = None):
        self.user_id = user_id
        super().__init__(message)

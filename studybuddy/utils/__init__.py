"""
Utility modules for the tutoring engine.

Note: progress (dashboard analytics) depends on the engine and is imported
directly as studybuddy.utils.progress.
"""

from .json_parsing import parse_json_response
from .logger import setup_logging
from .persistence import InMemoryProgressionStore, JsonProgressionStore, ProgressionStore
from .validation import ProgressionStateValidator, SchemaValidator, ValidationResult, validate_progression_state

__all__ = [
    "parse_json_response",
    "setup_logging",
    "InMemoryProgressionStore",
    "JsonProgressionStore",
    "ProgressionStore",
    "ProgressionStateValidator",
    "SchemaValidator",
    "ValidationResult",
    "validate_progression_state",
]

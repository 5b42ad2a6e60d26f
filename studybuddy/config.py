"""
Configuration management for StudyBuddy.

This module centralizes all configuration settings following 12-factor app principles:
- Secrets loaded from environment variables
- Sensible defaults for development
- Tutoring and progression thresholds in one place
- Validation that reports problems instead of raising
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class ModelConfig:
    """Content generator (LLM) configuration with OpenAI API settings."""

    # OpenAI settings (env-driven for flexibility)
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    )
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    temperature: float = 0.7
    max_tokens: int = 800

    # Feedback and problem prompts run cooler than explanations
    feedback_temperature: float = 0.6

    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )


@dataclass
class TutoringConfig:
    """Live session scoring and difficulty adaptation settings."""

    default_difficulty: int = 5
    min_difficulty: int = 1
    max_difficulty: int = 10
    initial_understanding: int = 50

    # Engagement baseline: one interaction per minute
    expected_interaction_seconds: int = 60

    # Reading speed used to estimate content duration
    words_per_minute: int = 50

    # Problem answers mapped to performance scores
    correct_answer_score: int = 90
    incorrect_answer_score: int = 40
    correct_understanding_bonus: int = 10
    incorrect_understanding_penalty: int = 5


@dataclass
class ProgressionConfig:
    """Progression ledger defaults and achievement thresholds."""

    weekly_goal_minutes: int = 300
    default_session_xp: int = 50
    default_progress_increment: int = 5

    marathon_minutes: int = 60
    perfectionist_score: int = 90
    dedicated_scholar_minutes: int = 5000


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    package_root: Path = field(default_factory=lambda: Path(__file__).parent)
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("STUDYBUDDY_DATA_DIR", "data")).resolve()
    )

    progression_dir: Path = field(init=False)
    schemas_dir: Path = field(init=False)
    progression_schema: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.progression_dir = self.data_dir / "progression"
        self.schemas_dir = self.package_root / "schemas"
        self.progression_schema = self.schemas_dir / "progression.schema.json"

    def prepare_filesystem(self):
        """
        Create data directories if they don't exist.

        Separated from __post_init__ to avoid side-effects on import.
        Call this explicitly from your app entrypoint.
        """
        for directory in [self.data_dir, self.progression_dir]:
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = field(
        default_factory=lambda: os.getenv("STUDYBUDDY_LOG_LEVEL", "INFO")
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from studybuddy.config import config

        threshold = config.progression.perfectionist_score
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.tutoring = TutoringConfig()
            cls._instance.progression = ProgressionConfig()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        # Model validation
        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment")

        if not (0 <= self.model.temperature <= 2):
            errors.append(f"temperature must be in [0, 2], got {self.model.temperature}")

        if self.model.max_tokens <= 0:
            errors.append(f"max_tokens must be > 0, got {self.model.max_tokens}")

        # Tutoring validation
        tutoring = self.tutoring
        if not (1 <= tutoring.min_difficulty <= tutoring.max_difficulty <= 10):
            errors.append(
                "difficulty bounds must satisfy 1 <= min <= max <= 10, got "
                f"[{tutoring.min_difficulty}, {tutoring.max_difficulty}]"
            )

        if not (tutoring.min_difficulty <= tutoring.default_difficulty <= tutoring.max_difficulty):
            errors.append(
                f"default_difficulty {tutoring.default_difficulty} outside difficulty bounds"
            )

        if not (0 <= tutoring.initial_understanding <= 100):
            errors.append(
                f"initial_understanding must be in [0, 100], got {tutoring.initial_understanding}"
            )

        if tutoring.expected_interaction_seconds <= 0:
            errors.append(
                "expected_interaction_seconds must be > 0, got "
                f"{tutoring.expected_interaction_seconds}"
            )

        if tutoring.words_per_minute <= 0:
            errors.append(f"words_per_minute must be > 0, got {tutoring.words_per_minute}")

        # Progression validation
        if self.progression.weekly_goal_minutes <= 0:
            errors.append(
                f"weekly_goal_minutes must be > 0, got {self.progression.weekly_goal_minutes}"
            )

        # Path validation
        if not self.paths.progression_schema.exists():
            errors.append(f"Progression schema not found: {self.paths.progression_schema}")

        return errors


# Global config instance
config = Config()

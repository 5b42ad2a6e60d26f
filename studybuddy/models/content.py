"""
Tutoring content and feedback data types.

ContentUnit and FeedbackSample are transient: produced during a live
session and handed to the presentation layer, never persisted long-term.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal

ContentKind = Literal["explanation", "example", "practice", "quiz", "visual"]
VisualType = Literal["diagram", "chart", "animation", "interactive"]

CONTENT_KINDS = ("explanation", "example", "practice", "quiz", "visual")
INTERACTIVE_KINDS = frozenset({"practice", "quiz"})

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10

DEFAULT_PREREQUISITES = ["Basic understanding of the topic"]
DEFAULT_OBJECTIVES = [
    "Understand the core concept",
    "Apply knowledge to examples",
    "Solve related problems",
]


def clamp_difficulty(value: int) -> int:
    """Clamp a difficulty level to [1, 10]."""
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, int(value)))


def estimate_minutes(body: str, words_per_minute: int = 50) -> int:
    """Estimate reading/completion time from word count (floor of 1 minute)."""
    word_count = len(body.split())
    return max(1, word_count // words_per_minute)


@dataclass
class ContentUnit:
    """
    One discrete piece of generated tutoring material.

    Attributes:
        kind: explanation, example, practice, quiz or visual
        body: Generated text shown to the learner
        difficulty: Complexity level in [1, 10]
        estimated_minutes: Expected time to work through the unit (>= 1)
        prerequisites: Ordered prerequisite descriptions
        objectives: Ordered learning objectives
        interactive: True for practice and quiz units
        topic: Topic the unit was generated for
        is_fallback: True when the generator failed and a template was used
    """
    kind: ContentKind
    body: str
    difficulty: int
    estimated_minutes: int = 1
    prerequisites: List[str] = field(default_factory=lambda: list(DEFAULT_PREREQUISITES))
    objectives: List[str] = field(default_factory=lambda: list(DEFAULT_OBJECTIVES))
    interactive: bool = False
    topic: str = ""
    is_fallback: bool = False
    id: str = field(default_factory=lambda: f"cu-{uuid.uuid4()}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.kind not in CONTENT_KINDS:
            raise ValueError(f"Unknown content kind: {self.kind}")
        self.difficulty = clamp_difficulty(self.difficulty)
        self.estimated_minutes = max(1, int(self.estimated_minutes))

    @classmethod
    def from_text(
        cls,
        kind: ContentKind,
        body: str,
        difficulty: int,
        topic: str = "",
        words_per_minute: int = 50,
        is_fallback: bool = False,
    ) -> ContentUnit:
        """Wrap generated text into a unit with derived timing and interactivity."""
        return cls(
            kind=kind,
            body=body,
            difficulty=difficulty,
            estimated_minutes=estimate_minutes(body, words_per_minute),
            interactive=kind in INTERACTIVE_KINDS,
            topic=topic,
            is_fallback=is_fallback,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "kind": self.kind,
            "body": self.body,
            "difficulty": self.difficulty,
            "estimated_minutes": self.estimated_minutes,
            "prerequisites": list(self.prerequisites),
            "objectives": list(self.objectives),
            "interactive": self.interactive,
            "topic": self.topic,
            "is_fallback": self.is_fallback,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class FeedbackSample:
    """
    Per-interaction assessment of the learner.

    Attributes:
        understanding: How well the learner grasps the material (0-100)
        engagement: How actively the learner participates (0-100)
        confusion_points: Notes about detected confusion
        suggested_actions: Teaching adjustments to consider
        next_topics: Recommended follow-up topics
    """
    understanding: int
    engagement: int
    confusion_points: List[str] = field(default_factory=list)
    suggested_actions: List[str] = field(default_factory=list)
    next_topics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "understanding": self.understanding,
            "engagement": self.engagement,
            "confusion_points": list(self.confusion_points),
            "suggested_actions": list(self.suggested_actions),
            "next_topics": list(self.next_topics),
        }


@dataclass
class InteractiveProblem:
    """A multiple-choice practice problem."""
    question: str
    options: List[str]
    correct_answer: str
    explanation: str = ""
    hints: List[str] = field(default_factory=list)
    topic: str = ""
    difficulty: int = 5
    is_fallback: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], topic: str, difficulty: int) -> InteractiveProblem:
        """
        Build a problem from generator JSON.

        Accepts both camelCase and snake_case keys for the answer field.

        Raises:
            ValueError: If the question or options are missing
        """
        question = data.get("question")
        options = data.get("options")
        if not question or not isinstance(options, list) or len(options) < 2:
            raise ValueError("Problem JSON must contain a question and at least 2 options")

        correct = data.get("correctAnswer", data.get("correct_answer"))
        if correct is None:
            raise ValueError("Problem JSON is missing the correct answer")

        hints = data.get("hints") or []
        if isinstance(hints, str):
            hints = [hints]

        return cls(
            question=str(question),
            options=[str(opt) for opt in options],
            correct_answer=str(correct),
            explanation=str(data.get("explanation", "")),
            hints=[str(h) for h in hints],
            topic=topic,
            difficulty=clamp_difficulty(difficulty),
        )

    @classmethod
    def fallback(cls, topic: str, difficulty: int = 5) -> InteractiveProblem:
        """Generic problem used when generation fails."""
        return cls(
            question=f"Practice problem for {topic}",
            options=["Option A", "Option B", "Option C", "Option D"],
            correct_answer="Option A",
            explanation="This is the correct answer because...",
            hints=[
                "Think about the basic principles",
                "Consider the examples we discussed",
            ],
            topic=topic,
            difficulty=clamp_difficulty(difficulty),
            is_fallback=True,
        )

    def is_correct(self, selected: str) -> bool:
        """Check a selected option against the correct answer."""
        return selected.strip().lower() == self.correct_answer.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "hints": list(self.hints),
            "topic": self.topic,
            "difficulty": self.difficulty,
            "is_fallback": self.is_fallback,
        }


@dataclass
class VisualExplanation:
    """Description of a visual learning aid for a concept."""
    concept: str
    description: str
    instructions: str
    visual_type: VisualType = "diagram"
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "concept": self.concept,
            "description": self.description,
            "visual_type": self.visual_type,
            "instructions": self.instructions,
            "is_fallback": self.is_fallback,
        }

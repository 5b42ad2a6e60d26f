"""
Difficulty Adaptation Controller - picks the next difficulty and content type.

Algorithm:
- Performance above 80 while finishing faster than the estimate → one level harder
- Performance below 60, or taking over 1.5x the estimate → one level easier
- Otherwise keep the current level
Difficulty is always clamped to [1, 10].

Generator failures never block a session: every generation path has a
templated fallback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..agents.content_generator import (
    CONTENT_PROMPT,
    EMOTIONAL_ADAPTATION,
    PROBLEM_CONTEXT,
    PROBLEM_PROMPT,
    TUTOR_CONTEXT,
    VISUAL_CONTEXT,
    VISUAL_PROMPT,
    ContentGenerator,
)
from ..config import config
from ..exceptions import ContentGenerationFailure
from ..models.content import (
    ContentKind,
    ContentUnit,
    InteractiveProblem,
    VisualExplanation,
    clamp_difficulty,
)
from ..utils.json_parsing import parse_json_response

logger = logging.getLogger(__name__)

INCREASE_THRESHOLD = 80
DECREASE_THRESHOLD = 60
SLOW_FACTOR = 1.5

FALLBACK_TEMPLATES = {
    "explanation": (
        "Let's take {topic} one step at a time. Start with the core idea, "
        "then connect it to something you already know before moving on."
    ),
    "example": (
        "Here is a worked example for {topic}. Follow each step and notice "
        "which rule is applied where."
    ),
    "practice": (
        "Practice time: try a short problem on {topic} on your own, then "
        "compare your reasoning with the steps we covered."
    ),
    "quiz": (
        "Quick check on {topic}: answer a few questions to see which parts "
        "are solid and which need another look."
    ),
    "visual": (
        "Picture {topic} as a diagram: sketch the main parts and draw arrows "
        "showing how they relate."
    ),
}


def next_difficulty(
    current: int,
    performance_score: float,
    time_spent_minutes: float,
    estimated_minutes: float,
) -> int:
    """
    Compute the next difficulty level.

    Args:
        current: Current difficulty (1-10)
        performance_score: Observed performance (0-100)
        time_spent_minutes: Time spent on the current unit
        estimated_minutes: Current unit's estimated duration

    Returns:
        New difficulty in [1, 10]
    """
    performance_score = max(0.0, min(100.0, performance_score))
    time_spent_minutes = max(0.0, time_spent_minutes)

    if performance_score > INCREASE_THRESHOLD and time_spent_minutes < estimated_minutes:
        return clamp_difficulty(current + 1)
    if performance_score < DECREASE_THRESHOLD or time_spent_minutes > estimated_minutes * SLOW_FACTOR:
        return clamp_difficulty(current - 1)
    return clamp_difficulty(current)


def determine_content_type(user_input: str, understanding: float) -> ContentKind:
    """Pick a content type from explicit requests, else from understanding."""
    lowered = (user_input or "").lower()
    if "example" in lowered or "show me" in lowered:
        return "example"
    if "practice" in lowered or "try" in lowered:
        return "practice"
    if "quiz" in lowered or "test" in lowered:
        return "quiz"
    if understanding < 50:
        return "explanation"
    return "example"


def fallback_unit(kind: ContentKind, topic: str, difficulty: int) -> ContentUnit:
    """Templated unit used when the generator is unavailable."""
    body = FALLBACK_TEMPLATES[kind].format(topic=topic or "this topic")
    return ContentUnit.from_text(
        kind,
        body,
        difficulty,
        topic=topic,
        words_per_minute=config.tutoring.words_per_minute,
        is_fallback=True,
    )


class DifficultyController:
    """
    Adapts content difficulty to learner performance and materializes the
    next ContentUnit through the content generator.
    """

    def __init__(self, generator: ContentGenerator, words_per_minute: Optional[int] = None):
        """
        Initialize the controller.

        Args:
            generator: Content generator used to materialize units
            words_per_minute: Reading speed for duration estimates (default from config)
        """
        self.generator = generator
        self.words_per_minute = words_per_minute or config.tutoring.words_per_minute

    async def adapt(
        self,
        current_unit: ContentUnit,
        performance_score: float,
        time_spent_minutes: float,
        user_input: str = "",
        understanding: Optional[float] = None,
        emotional_state: str = "calm",
        topic: Optional[str] = None,
    ) -> ContentUnit:
        """
        Produce the next content unit.

        Args:
            current_unit: Unit the learner just worked through
            performance_score: Observed performance (0-100)
            time_spent_minutes: Time spent on the current unit
            user_input: Learner text that triggered the adaptation
            understanding: Running understanding (defaults to performance_score)
            emotional_state: calm, frustrated, anxious, excited or confident
            topic: Topic to generate for (defaults to the current unit's topic)

        Returns:
            New ContentUnit (a fallback unit if generation failed)
        """
        difficulty = next_difficulty(
            current_unit.difficulty,
            performance_score,
            time_spent_minutes,
            current_unit.estimated_minutes,
        )
        if difficulty != current_unit.difficulty:
            logger.info(
                "Difficulty adjusted: %d -> %d (performance=%.0f, time=%.1f/%d min)",
                current_unit.difficulty,
                difficulty,
                performance_score,
                time_spent_minutes,
                current_unit.estimated_minutes,
            )

        if understanding is None:
            understanding = performance_score
        kind = determine_content_type(user_input, understanding)

        return await self.generate_unit(
            kind,
            difficulty,
            topic if topic is not None else current_unit.topic,
            user_input=user_input or f"Adapt this content to difficulty level {difficulty}: {current_unit.body}",
            emotional_state=emotional_state,
        )

    async def generate_unit(
        self,
        kind: ContentKind,
        difficulty: int,
        topic: str,
        user_input: str,
        emotional_state: str = "calm",
    ) -> ContentUnit:
        """Generate a unit of the given kind and difficulty, falling back to a template."""
        difficulty = clamp_difficulty(difficulty)
        if emotional_state not in EMOTIONAL_ADAPTATION:
            emotional_state = "calm"

        prompt = CONTENT_PROMPT.format(
            user_input=user_input,
            topic=topic,
            content_type=kind,
            difficulty=difficulty,
            emotional_state=emotional_state,
            adaptation=EMOTIONAL_ADAPTATION[emotional_state],
        )

        try:
            text = await self._generate(prompt, TUTOR_CONTEXT)
        except ContentGenerationFailure as e:
            logger.warning("Using fallback %s for '%s': %s", kind, topic, e)
            return fallback_unit(kind, topic, difficulty)

        return ContentUnit.from_text(
            kind, text, difficulty, topic=topic, words_per_minute=self.words_per_minute
        )

    async def generate_problem(
        self,
        topic: str,
        difficulty: int,
        weak_areas: Optional[List[str]] = None,
    ) -> InteractiveProblem:
        """
        Generate a multiple-choice problem targeting weak areas.

        Returns the fallback problem if generation or parsing fails.
        """
        difficulty = clamp_difficulty(difficulty)
        prompt = PROBLEM_PROMPT.format(
            topic=topic,
            difficulty=difficulty,
            weak_areas=", ".join(weak_areas or []) or "general understanding",
        )

        try:
            text = await self._generate(prompt, PROBLEM_CONTEXT)
            data = parse_json_response(text)
            if not isinstance(data, dict):
                raise ValueError("Problem JSON is not an object")
            return InteractiveProblem.from_dict(data, topic=topic, difficulty=difficulty)
        except (ContentGenerationFailure, ValueError) as e:
            logger.warning("Using fallback problem for '%s': %s", topic, e)
            return InteractiveProblem.fallback(topic, difficulty)

    async def generate_visual(self, concept: str) -> VisualExplanation:
        """Describe a visual aid for a concept."""
        try:
            text = await self._generate(VISUAL_PROMPT.format(concept=concept), VISUAL_CONTEXT)
        except ContentGenerationFailure as e:
            logger.warning("Using fallback visual for '%s': %s", concept, e)
            body = FALLBACK_TEMPLATES["visual"].format(topic=concept)
            return VisualExplanation(
                concept=concept, description=body, instructions=body, is_fallback=True
            )

        return VisualExplanation(concept=concept, description=text, instructions=text)

    async def _generate(self, prompt: str, context: str) -> str:
        """
        Call the generator, normalizing every failure to ContentGenerationFailure.

        Cancellation of the caller's own task is re-raised; a generator that
        cancels itself counts as a failed generation.
        """
        try:
            text = await self.generator.generate(prompt, context)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise ContentGenerationFailure("Content generation was cancelled")
        except ContentGenerationFailure:
            raise
        except Exception as e:
            raise ContentGenerationFailure(str(e)) from e

        if not text or not text.strip():
            raise ContentGenerationFailure("Content generator returned no text")
        return text

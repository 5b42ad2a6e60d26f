"""
Feedback Scorer - heuristic understanding and engagement scores.

Turns raw interaction signals (response text, elapsed time) into a
FeedbackSample. Deterministic and side-effect free.
"""

from __future__ import annotations

from typing import List

from ..models.content import FeedbackSample

BASE_UNDERSTANDING = 50
LONG_RESPONSE_CHARS = 50
LONG_RESPONSE_BONUS = 20
COMPREHENSION_BONUS = 20
FAST_RESPONSE_SECONDS = 30
FAST_RESPONSE_BONUS = 10

COMPREHENSION_KEYWORDS = ("understand", "clear")
CONFUSION_INDICATORS = ("confused", "don't understand", "unclear", "help")

ADVANCED_TOPICS = ["Advanced applications", "Related concepts", "Practice problems"]
REVIEW_TOPICS = ["Review fundamentals", "Additional examples", "Simplified explanations"]


def _clamp_score(value: float) -> int:
    return int(max(0, min(100, value)))


def analyze_understanding(text: str, elapsed_seconds: float) -> int:
    """
    Score understanding from a learner response.

    Base 50, +20 for responses longer than 50 characters, +20 when a
    comprehension keyword appears, +10 for answers under 30 seconds.
    """
    text = text or ""
    score = BASE_UNDERSTANDING
    if len(text) > LONG_RESPONSE_CHARS:
        score += LONG_RESPONSE_BONUS
    lowered = text.lower()
    if any(keyword in lowered for keyword in COMPREHENSION_KEYWORDS):
        score += COMPREHENSION_BONUS
    if elapsed_seconds < FAST_RESPONSE_SECONDS:
        score += FAST_RESPONSE_BONUS
    return _clamp_score(score)


def analyze_engagement(elapsed_seconds: float, expected_seconds: float = 60) -> int:
    """
    Score engagement from time spent relative to the expected baseline.

    Between half and double the baseline is good engagement (80); faster
    suggests skimming (40); slower suggests struggling (60).
    """
    ratio = max(0.0, elapsed_seconds) / expected_seconds
    if 0.5 < ratio < 2:
        return 80
    if ratio <= 0.5:
        return 40
    return 60


def identify_confusion_points(text: str) -> List[str]:
    """One note per confusion indicator found in the text."""
    lowered = (text or "").lower()
    return [
        f"User expressed confusion about the concept ('{indicator}')"
        for indicator in CONFUSION_INDICATORS
        if indicator in lowered
    ]


def suggest_actions(understanding: int, engagement: int) -> List[str]:
    """Independent rule table; several rules may fire together."""
    actions = []
    if understanding < 60:
        actions.append("Provide additional examples")
        actions.append("Break down the concept further")
    if engagement < 60:
        actions.append("Add interactive elements")
        actions.append("Change teaching approach")
    if understanding > 80 and engagement > 80:
        actions.append("Introduce more challenging concepts")
        actions.append("Provide advanced applications")
    return actions


def recommend_next_topics(understanding: int) -> List[str]:
    if understanding > 75:
        return list(ADVANCED_TOPICS)
    return list(REVIEW_TOPICS)


def build_feedback(understanding: int, engagement: int, text: str = "") -> FeedbackSample:
    """Assemble a FeedbackSample from already-computed scores."""
    understanding = _clamp_score(understanding)
    engagement = _clamp_score(engagement)
    return FeedbackSample(
        understanding=understanding,
        engagement=engagement,
        confusion_points=identify_confusion_points(text),
        suggested_actions=suggest_actions(understanding, engagement),
        next_topics=recommend_next_topics(understanding),
    )


def score(
    interaction_text: str,
    elapsed_seconds: float,
    prior_understanding: int = 50,
    expected_seconds: float = 60,
) -> FeedbackSample:
    """
    Score one interaction.

    Args:
        interaction_text: What the learner typed or said
        elapsed_seconds: Time the learner spent before responding
        prior_understanding: Running understanding before this interaction
            (the heuristic scores each interaction on its own)
        expected_seconds: Engagement baseline

    Returns:
        FeedbackSample with scores and derived suggestions
    """
    elapsed_seconds = max(0.0, float(elapsed_seconds))
    understanding = analyze_understanding(interaction_text, elapsed_seconds)
    engagement = analyze_engagement(elapsed_seconds, expected_seconds)
    return build_feedback(understanding, engagement, interaction_text)

"""
Progress analytics helpers for dashboards.

Provides:
- Mastery summary statistics across subjects
- Mastery categories (novice .. expert)
- Weak/strong area rollups
- A single dashboard snapshot of a user's progression
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, Iterable, List, Tuple

from ..engine.progression import active_streak, weekly_goal_status
from ..models.progression import PerSubjectProgress, ProgressionState

MASTERY_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "novice": (0.0, 50.0),
    "beginner": (50.0, 65.0),
    "intermediate": (65.0, 80.0),
    "advanced": (80.0, 90.0),
    "expert": (90.0, 100.0),
}


def mastery_summary(subjects: Iterable[PerSubjectProgress]) -> Dict[str, float]:
    """
    Calculate summary statistics for subject mastery.

    Args:
        subjects: Per-subject progress records

    Returns:
        Dict with mean, median, min, max, std_dev and count

    Example:
        >>> mastery_summary([PerSubjectProgress("Math", mastery_percent=80),
        ...                  PerSubjectProgress("Physics", mastery_percent=65)])["mean"]
        72.5
    """
    values = sorted(float(s.mastery_percent) for s in subjects)
    if not values:
        return {"mean": 0.0, "median": 0.0, "min": 0.0, "max": 0.0, "std_dev": 0.0, "count": 0}

    n = len(values)
    mean_val = sum(values) / n

    if n % 2 == 1:
        median_val = values[n // 2]
    else:
        median_val = (values[n // 2 - 1] + values[n // 2]) / 2.0

    variance = sum((v - mean_val) ** 2 for v in values) / n

    return {
        "mean": round(mean_val, 2),
        "median": round(median_val, 2),
        "min": round(values[0], 2),
        "max": round(values[-1], 2),
        "std_dev": round(math.sqrt(variance), 2),
        "count": n,
    }


def mastery_by_category(subjects: Iterable[PerSubjectProgress]) -> Dict[str, List[str]]:
    """Group subject names by mastery level."""
    categories: Dict[str, List[str]] = {cat: [] for cat in MASTERY_THRESHOLDS}

    for progress in subjects:
        score = float(progress.mastery_percent)
        for category, (low, high) in MASTERY_THRESHOLDS.items():
            if low <= score < high or (category == "expert" and score == 100.0):
                categories[category].append(progress.subject)
                break

    return categories


def focus_areas(subjects: Iterable[PerSubjectProgress]) -> Dict[str, List[str]]:
    """Collect weak and strong topic areas across subjects, prefixed by subject."""
    weak: List[str] = []
    strong: List[str] = []
    for progress in subjects:
        weak.extend(f"{progress.subject}: {area}" for area in progress.weak_areas)
        strong.extend(f"{progress.subject}: {area}" for area in progress.strong_areas)
    return {"weak": weak, "strong": strong}


def dashboard_snapshot(state: ProgressionState, today: date) -> Dict[str, Any]:
    """Everything the dashboard shows about a user's progression."""
    subjects = list(state.subjects.values())
    weekly = weekly_goal_status(state.ledger, today)
    return {
        "ledger": state.ledger.to_dict(),
        "streak_days": active_streak(state.ledger, today),
        "weekly_goal": {
            "goal_minutes": weekly.goal_minutes,
            "progress_minutes": weekly.progress_minutes,
            "progress_percent": weekly.progress_percent,
            "remaining_minutes": weekly.remaining_minutes,
            "days_left": weekly.days_left,
        },
        "mastery": mastery_summary(subjects),
        "mastery_by_level": {k: len(v) for k, v in mastery_by_category(subjects).items()},
        "focus_areas": focus_areas(subjects),
        "achievements": [a.to_dict() for a in state.achievements],
        "recent_sessions": [s.to_dict() for s in state.recent_sessions],
    }

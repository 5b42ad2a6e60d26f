"""
Achievement Rule Engine.

Each rule is an id, a predicate over the session outcome and the updated
ledger, and badge metadata. Rules are evaluated at session end and fire at
most once per user: a rule whose id is already unlocked is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set, Tuple

from ..config import config
from ..models.progression import AchievementCategory, AchievementRecord, ProgressionLedger, Rarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionOutcome:
    """What a finished session contributes to rule evaluation."""
    subject: str
    duration_minutes: int
    score: Optional[int] = None
    session_id: Optional[str] = None
    topics_completed: Tuple[str, ...] = ()


Predicate = Callable[[SessionOutcome, ProgressionLedger], bool]


@dataclass(frozen=True)
class AchievementRule:
    id: str
    title: str
    description: str
    icon: str
    rarity: Rarity
    category: AchievementCategory
    predicate: Predicate

    def unlock(self, now: datetime) -> AchievementRecord:
        return AchievementRecord(
            id=self.id,
            title=self.title,
            description=self.description,
            icon=self.icon,
            rarity=self.rarity,
            category=self.category,
            unlocked_at=now,
        )


def default_rules() -> List[AchievementRule]:
    """The shipped rules, with thresholds from config."""
    thresholds = config.progression
    return [
        AchievementRule(
            id="marathon-learner",
            title="Marathon Learner",
            description=f"Studied for {thresholds.marathon_minutes} minutes straight",
            icon="🏃",
            rarity="rare",
            category="learning",
            predicate=lambda outcome, ledger: outcome.duration_minutes >= thresholds.marathon_minutes,
        ),
        AchievementRule(
            id="perfectionist",
            title="Perfectionist",
            description=f"Scored {thresholds.perfectionist_score}% or higher on practice problems",
            icon="💯",
            rarity="epic",
            category="mastery",
            predicate=lambda outcome, ledger: (
                outcome.score is not None and outcome.score >= thresholds.perfectionist_score
            ),
        ),
        AchievementRule(
            id="dedicated-scholar",
            title="Dedicated Scholar",
            description=f"Accumulated {thresholds.dedicated_scholar_minutes} minutes of study time",
            icon="📚",
            rarity="legendary",
            category="learning",
            predicate=lambda outcome, ledger: (
                ledger.total_study_time_minutes >= thresholds.dedicated_scholar_minutes
            ),
        ),
    ]


def evaluate_achievements(
    outcome: SessionOutcome,
    ledger: ProgressionLedger,
    unlocked_ids: Set[str],
    now: datetime,
    rules: Optional[Iterable[AchievementRule]] = None,
) -> List[AchievementRecord]:
    """
    Evaluate rules and return newly unlocked achievements.

    Args:
        outcome: Finished session
        ledger: Ledger after this session's update
        unlocked_ids: Achievement ids the user already holds
        now: Unlock timestamp
        rules: Rules to evaluate (defaults to default_rules())

    Returns:
        New AchievementRecords, in rule order
    """
    unlocked: List[AchievementRecord] = []
    seen = set(unlocked_ids)

    for rule in rules if rules is not None else default_rules():
        if rule.id in seen:
            continue
        if rule.predicate(outcome, ledger):
            unlocked.append(rule.unlock(now))
            seen.add(rule.id)
            logger.info("Achievement unlocked: %s", rule.id)

    return unlocked

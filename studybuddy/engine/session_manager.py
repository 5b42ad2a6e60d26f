"""
Session & Progression Manager - the stateful orchestrator.

Owns one user's live tutoring session (idle → active → ended) and that
user's durable progression ledger. Every interaction runs the Feedback
Scorer and the Difficulty Adaptation Controller; ending a session updates
the ledger, subject progress, streak and achievements, then saves.

Concurrency:
- All state-changing operations for a user are serialized by one
  asyncio.Lock, so read-modify-write steps never interleave.
- Results are computed first and committed only after every awaited call
  succeeded; a failed or cancelled step leaves state untouched.
- There is no process-wide state: TutoringEngine keeps one manager per user.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Iterable, List, Optional

from ..agents.content_generator import ContentGenerator
from ..agents.media import MediaReference, SpeechSynthesizer, VideoAvatarRenderer, render_narration
from ..config import config
from ..exceptions import NoActiveSessionError, PersistenceFailure, SessionAlreadyActiveError
from ..models.content import ContentUnit, FeedbackSample, InteractiveProblem, VisualExplanation
from ..models.progression import ProgressionLedger, ProgressionState
from ..models.session import InteractionResult, LiveSession, SessionSummary
from ..utils.persistence import ProgressionStore
from ..utils import progress as analytics
from . import feedback as scorer
from .achievements import AchievementRule, SessionOutcome
from .channel import FeedbackChannel, FeedbackSubscription
from .difficulty import DifficultyController
from .progression import (
    WeeklyGoalStatus,
    record_session,
    reset_weekly_progress,
    set_level,
    set_weekly_goal,
    weekly_goal_status,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _ActiveSession:
    """Runtime state of the active session, owned by the manager."""
    session: LiveSession
    current_unit: ContentUnit
    understanding: int
    engagement: int = 50
    queue: Deque[ContentUnit] = field(default_factory=deque)
    channel: FeedbackChannel = field(default_factory=FeedbackChannel)
    interactions: int = 0
    problems_answered: int = 0
    problems_correct: int = 0

    @property
    def practice_score(self) -> Optional[int]:
        """Percentage of correct answers, or None if no problem was answered."""
        if not self.problems_answered:
            return None
        return round(100 * self.problems_correct / self.problems_answered)


class SessionManager:
    """
    Live session state machine and progression ledger for one user.

    Usage:
        manager = SessionManager("user-1", generator, store)
        session = await manager.start_session("Mathematics", "Derivatives")
        result = await manager.submit_interaction("Can you show me an example?", 40)
        summary = await manager.end_session(session.id)
    """

    def __init__(
        self,
        user_id: str,
        generator: ContentGenerator,
        store: ProgressionStore,
        synthesizer: Optional[SpeechSynthesizer] = None,
        avatar: Optional[VideoAvatarRenderer] = None,
        clock: Optional[Clock] = None,
        rules: Optional[Iterable[AchievementRule]] = None,
    ):
        """
        Initialize the manager.

        Args:
            user_id: Learner this manager belongs to
            generator: Content generator for tutoring material
            store: Durable progression storage
            synthesizer: Optional speech synthesizer for narration
            avatar: Optional video avatar renderer for narration
            clock: Returns the current time (default: timezone-aware UTC now)
            rules: Achievement rules (default: the shipped rules)
        """
        if not user_id:
            raise ValueError("user_id is required")

        self.user_id = user_id
        self.store = store
        self.controller = DifficultyController(generator)
        self.synthesizer = synthesizer
        self.avatar = avatar
        self.clock = clock or utc_now
        self.rules = list(rules) if rules is not None else None

        self._lock = asyncio.Lock()
        # Held only around the first store load; never acquires _lock
        self._load_lock = asyncio.Lock()
        self._state: Optional[ProgressionState] = None
        self._active: Optional[_ActiveSession] = None

    # ==================== State Access ====================

    @property
    def session(self) -> Optional[LiveSession]:
        """The active session, if any."""
        return self._active.session if self._active else None

    @property
    def is_active(self) -> bool:
        return self._active is not None

    @property
    def understanding(self) -> Optional[int]:
        """Running understanding of the active session."""
        return self._active.understanding if self._active else None

    async def progression(self) -> ProgressionState:
        """Copy of the user's progression state (loaded on first use)."""
        state = await self._ensure_loaded()
        return state.copy()

    async def ledger(self) -> ProgressionLedger:
        return (await self.progression()).ledger

    async def _ensure_loaded(self) -> ProgressionState:
        if self._state is None:
            async with self._load_lock:
                if self._state is None:
                    self._state = await self.store.load(self.user_id)
        return self._state

    def _require_active(self, session_id: Optional[str] = None) -> _ActiveSession:
        if self._active is None:
            raise NoActiveSessionError(self.user_id, session_id)
        if session_id is not None and session_id != self._active.session.id:
            raise NoActiveSessionError(self.user_id, session_id)
        return self._active

    # ==================== Session Lifecycle ====================

    async def start_session(
        self,
        subject: str,
        topic: str,
        user_level: str = "intermediate",
        learning_style: str = "visual",
    ) -> LiveSession:
        """
        Start a live session and seed its content queue.

        Args:
            subject: Subject being studied
            topic: Topic within the subject
            user_level: beginner, intermediate or advanced
            learning_style: Learner's preferred style (e.g. visual)

        Returns:
            The new LiveSession

        Raises:
            SessionAlreadyActiveError: If a session is already active
            ValueError: If subject/topic are empty or the level is unknown
        """
        if not subject or not subject.strip():
            raise ValueError("Subject cannot be empty")
        if not topic or not topic.strip():
            raise ValueError("Topic cannot be empty")

        async with self._lock:
            if self._active is not None:
                raise SessionAlreadyActiveError(self.user_id, self._active.session.id)

            await self._ensure_loaded()

            session = LiveSession(
                user_id=self.user_id,
                subject=subject,
                topic=topic,
                difficulty_tier=user_level,
                learning_style=learning_style,
                started_at=self.clock(),
            )

            initial_unit = await self.controller.generate_unit(
                "explanation",
                config.tutoring.default_difficulty,
                topic,
                user_input=(
                    f"Start teaching {topic} in {subject} for a {user_level} level student "
                    f"with {learning_style} learning style"
                ),
            )

            active = _ActiveSession(
                session=session,
                current_unit=initial_unit,
                understanding=config.tutoring.initial_understanding,
            )
            active.queue.append(initial_unit)
            self._active = active

        logger.info("Session %s started for %s: %s / %s", session.id, self.user_id, subject, topic)
        return session

    async def submit_interaction(
        self,
        text: str,
        elapsed_seconds: float,
        emotional_state: str = "calm",
    ) -> InteractionResult:
        """
        Score a learner interaction and queue adapted content.

        Args:
            text: Learner input
            elapsed_seconds: Time taken for the interaction
            emotional_state: calm, frustrated, anxious, excited or confident

        Returns:
            InteractionResult with the new content and the feedback

        Raises:
            NoActiveSessionError: If no session is active
            ValueError: If elapsed_seconds is negative
        """
        if elapsed_seconds < 0:
            raise ValueError(f"Elapsed time cannot be negative: {elapsed_seconds}")

        async with self._lock:
            active = self._require_active()

            sample = scorer.score(
                text,
                elapsed_seconds,
                prior_understanding=active.understanding,
                expected_seconds=config.tutoring.expected_interaction_seconds,
            )
            logger.debug(
                "Interaction scored: understanding=%d engagement=%d",
                sample.understanding,
                sample.engagement,
            )

            unit = await self.controller.adapt(
                active.current_unit,
                sample.understanding,
                elapsed_seconds / 60,
                user_input=text,
                understanding=sample.understanding,
                emotional_state=emotional_state,
                topic=active.session.topic,
            )

            active.understanding = sample.understanding
            active.engagement = sample.engagement
            active.interactions += 1
            self._enqueue(active, unit)
            active.channel.publish(sample)

        return InteractionResult(content=unit, feedback=sample)

    async def answer_problem(
        self,
        selected_option: str,
        correct_option: str,
        elapsed_seconds: float = 60,
    ) -> FeedbackSample:
        """
        Record a problem answer and adapt difficulty to it.

        Correct answers count as performance 90 and raise understanding by 10;
        incorrect ones count as 40 and lower it by 5 (clamped to [0, 100]).

        Raises:
            NoActiveSessionError: If no session is active
            ValueError: If elapsed_seconds is negative
        """
        if elapsed_seconds < 0:
            raise ValueError(f"Elapsed time cannot be negative: {elapsed_seconds}")

        tutoring = config.tutoring
        is_correct = selected_option.strip().lower() == correct_option.strip().lower()

        async with self._lock:
            active = self._require_active()

            if is_correct:
                performance = tutoring.correct_answer_score
                understanding = active.understanding + tutoring.correct_understanding_bonus
            else:
                performance = tutoring.incorrect_answer_score
                understanding = active.understanding - tutoring.incorrect_understanding_penalty
            understanding = max(0, min(100, understanding))

            engagement = scorer.analyze_engagement(elapsed_seconds, tutoring.expected_interaction_seconds)
            sample = scorer.build_feedback(understanding, engagement)

            unit = await self.controller.adapt(
                active.current_unit,
                performance,
                elapsed_seconds / 60,
                understanding=understanding,
                topic=active.session.topic,
            )

            active.understanding = understanding
            active.engagement = engagement
            active.problems_answered += 1
            if is_correct:
                active.problems_correct += 1
            self._enqueue(active, unit)
            active.channel.publish(sample)

        return sample

    async def end_session(
        self,
        session_id: Optional[str] = None,
        score: Optional[int] = None,
        duration_minutes: Optional[int] = None,
    ) -> SessionSummary:
        """
        End the active session and record it in the progression ledger.

        Args:
            session_id: Session to end (must be the active one if given)
            score: Session score 0-100 (defaults to the practice-problem score, if any)
            duration_minutes: Override for the elapsed duration

        Returns:
            SessionSummary with the updated ledger and unlocked achievements

        Raises:
            NoActiveSessionError: If no matching session is active
            PersistenceFailure: If saving fails; the session stays active and
                nothing is committed, so the call can be retried
        """
        async with self._lock:
            active = self._require_active(session_id)
            session = active.session
            state = await self._ensure_loaded()

            now = self.clock()
            if duration_minutes is None:
                elapsed = (now - session.started_at).total_seconds()
                duration_minutes = max(0, int(elapsed // 60))
            if score is None:
                score = active.practice_score

            outcome = SessionOutcome(
                subject=session.subject,
                duration_minutes=duration_minutes,
                score=score,
                session_id=session.id,
                topics_completed=(session.topic,),
            )
            result = record_session(state, outcome, now, self.rules)

            await self._save(result.state)

            self._state = result.state
            session.is_active = False
            session.ended_at = now
            active.queue.clear()
            active.channel.close()
            self._active = None

        logger.info(
            "Session %s ended for %s: %d min, score=%s, +%d XP, %d achievement(s)",
            session.id,
            self.user_id,
            duration_minutes,
            score,
            result.xp_earned,
            len(result.unlocked),
        )

        snapshot = result.state.copy()
        return SessionSummary(
            session_id=session.id,
            subject=session.subject,
            topic=session.topic,
            duration_minutes=duration_minutes,
            score=score,
            xp_earned=result.xp_earned,
            interactions=active.interactions,
            problems_answered=active.problems_answered,
            problems_correct=active.problems_correct,
            subject_progress=snapshot.subjects[session.subject],
            ledger=snapshot.ledger,
            unlocked_achievements=list(result.unlocked),
            ended_at=now,
        )

    async def abandon_session(self) -> Optional[LiveSession]:
        """
        Discard the active session without recording progress.

        Intended for an external inactivity policy. Returns the abandoned
        session, or None if nothing was active.
        """
        async with self._lock:
            if self._active is None:
                return None
            active, self._active = self._active, None
            active.session.is_active = False
            active.session.ended_at = self.clock()
            active.queue.clear()
            active.channel.close()

        logger.info("Session %s abandoned for %s", active.session.id, self.user_id)
        return active.session

    # ==================== Content Queue & Feedback ====================

    def _enqueue(self, active: _ActiveSession, unit: ContentUnit) -> None:
        active.queue.append(unit)
        active.current_unit = unit

    def next_content(self) -> Optional[ContentUnit]:
        """Pop the oldest queued unit (None when empty or idle)."""
        if self._active is None or not self._active.queue:
            return None
        return self._active.queue.popleft()

    def pending_content(self) -> int:
        return len(self._active.queue) if self._active else 0

    def subscribe_feedback(self) -> FeedbackSubscription:
        """
        Subscribe to feedback of the active session.

        The subscription ends when the session ends.

        Raises:
            NoActiveSessionError: If no session is active
        """
        return self._require_active().channel.subscribe()

    # ==================== Learning Aids ====================

    async def generate_visual_explanation(self, concept: str) -> VisualExplanation:
        """Describe a visual aid for a concept in the active session."""
        self._require_active()
        return await self.controller.generate_visual(concept)

    async def generate_interactive_problem(
        self,
        topic: Optional[str] = None,
        difficulty: Optional[int] = None,
        weak_areas: Optional[List[str]] = None,
    ) -> InteractiveProblem:
        """
        Generate a practice problem.

        Defaults to the session topic, the current content difficulty and the
        subject's recorded weak areas.
        """
        active = self._require_active()
        if weak_areas is None:
            state = await self._ensure_loaded()
            progress = state.subjects.get(active.session.subject)
            weak_areas = list(progress.weak_areas) if progress else []

        return await self.controller.generate_problem(
            topic or active.session.topic,
            difficulty if difficulty is not None else active.current_unit.difficulty,
            weak_areas,
        )

    async def narrate(self, unit: Optional[ContentUnit] = None) -> List[MediaReference]:
        """Render speech/avatar media for a unit (default: the latest unit)."""
        if unit is None:
            unit = self._require_active().current_unit
        return await render_narration(unit.body, self.synthesizer, self.avatar)

    # ==================== Ledger Maintenance ====================

    async def weekly_goal_status(self) -> WeeklyGoalStatus:
        state = await self._ensure_loaded()
        return weekly_goal_status(state.ledger, self.clock().date())

    async def dashboard(self) -> dict:
        state = await self._ensure_loaded()
        return analytics.dashboard_snapshot(state, self.clock().date())

    async def reset_weekly_progress(self) -> ProgressionLedger:
        """Calendar-week boundary reset requested by the caller."""
        return await self._update_ledger(reset_weekly_progress)

    async def set_weekly_goal(self, minutes: int) -> ProgressionLedger:
        return await self._update_ledger(lambda ledger: set_weekly_goal(ledger, minutes))

    async def set_level(self, level: int) -> ProgressionLedger:
        return await self._update_ledger(lambda ledger: set_level(ledger, level))

    async def _update_ledger(self, mutate: Callable[[ProgressionLedger], None]) -> ProgressionLedger:
        async with self._lock:
            staged = (await self._ensure_loaded()).copy()
            mutate(staged.ledger)
            await self._save(staged)
            self._state = staged
            return staged.copy().ledger

    async def _save(self, state: ProgressionState) -> None:
        try:
            await self.store.save(self.user_id, state)
        except PersistenceFailure as e:
            logger.warning("Could not save progress for %s: %s", self.user_id, e)
            raise
        except Exception as e:
            logger.warning("Could not save progress for %s: %s", self.user_id, e)
            raise PersistenceFailure(str(e), user_id=self.user_id) from e


class TutoringEngine:
    """
    One SessionManager per user, created on demand.

    Only the stateless collaborators (generator, store, media) are shared.
    """

    def __init__(
        self,
        generator: ContentGenerator,
        store: ProgressionStore,
        synthesizer: Optional[SpeechSynthesizer] = None,
        avatar: Optional[VideoAvatarRenderer] = None,
        clock: Optional[Clock] = None,
    ):
        self.generator = generator
        self.store = store
        self.synthesizer = synthesizer
        self.avatar = avatar
        self.clock = clock
        self._managers: Dict[str, SessionManager] = {}

    def manager(self, user_id: str) -> SessionManager:
        """Get (or create) the manager for a user."""
        if user_id not in self._managers:
            self._managers[user_id] = SessionManager(
                user_id,
                self.generator,
                self.store,
                synthesizer=self.synthesizer,
                avatar=self.avatar,
                clock=self.clock,
            )
        return self._managers[user_id]

    def active_users(self) -> List[str]:
        return [user_id for user_id, m in self._managers.items() if m.is_active]

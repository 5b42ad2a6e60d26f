"""
Unit tests for the Session & Progression Manager.

Tests:
- Session lifecycle (start, interact, end, abandon)
- Difficulty adaptation and feedback delivery during a session
- Progression updates at session end (XP, streaks, achievements)
- Atomicity under save failures and cancellation
- Per-user isolation through TutoringEngine
"""

import asyncio
from datetime import date

import pytest

from studybuddy.agents.media import MediaReference
from studybuddy.engine.session_manager import SessionManager
from studybuddy.exceptions import (
    NoActiveSessionError,
    PersistenceFailure,
    SessionAlreadyActiveError,
)
from studybuddy.utils.persistence import InMemoryProgressionStore

CONFIDENT_ANSWER = "I understand the chain rule now, it is clear how the outer derivative multiplies."


async def run_session(manager, clock, minutes=10, score=None, subject="Mathematics"):
    await manager.start_session(subject, "Derivatives")
    clock.advance(minutes=minutes)
    return await manager.end_session(score=score)


class TestStartSession:
    """Test session creation and the initial content unit."""

    @pytest.mark.asyncio
    async def test_start_session_creates_active_session(self, manager):
        """Test that a new session is active and owned by the user."""
        session = await manager.start_session("Mathematics", "Derivatives", "beginner", "visual")

        assert session.is_active
        assert session.status == "active"
        assert session.participant_ids == {"user-1"}
        assert manager.session is session
        assert manager.understanding == 50

    @pytest.mark.asyncio
    async def test_initial_unit_is_queued(self, manager, generator):
        """Test that the first unit is a difficulty-5 explanation of the topic."""
        await manager.start_session("Mathematics", "Derivatives", "beginner", "visual")

        assert manager.pending_content() == 1
        unit = manager.next_content()
        assert unit.kind == "explanation"
        assert unit.difficulty == 5
        assert unit.topic == "Derivatives"
        assert not unit.interactive
        assert (
            "Start teaching Derivatives in Mathematics for a beginner level student "
            "with visual learning style"
        ) in generator.calls[0][0]

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, manager):
        """Test that a second start fails and leaves the first session intact."""
        first = await manager.start_session("Mathematics", "Derivatives")

        with pytest.raises(SessionAlreadyActiveError) as exc_info:
            await manager.start_session("Physics", "Kinematics")

        assert exc_info.value.user_message == "session already running"
        assert manager.session is first
        assert manager.pending_content() == 1

    @pytest.mark.asyncio
    async def test_start_after_end(self, manager):
        first = await manager.start_session("Mathematics", "Derivatives")
        await manager.end_session(first.id)

        second = await manager.start_session("Physics", "Kinematics")

        assert second.id != first.id
        assert manager.session is second

    @pytest.mark.asyncio
    async def test_unknown_level_rejected(self, manager):
        with pytest.raises(ValueError):
            await manager.start_session("Mathematics", "Derivatives", "expert")
        assert not manager.is_active

    @pytest.mark.asyncio
    async def test_empty_topic_rejected(self, manager):
        with pytest.raises(ValueError):
            await manager.start_session("Mathematics", "  ")

    @pytest.mark.asyncio
    async def test_generator_failure_uses_fallback(self, failing_generator, store, clock):
        """Test that a failing generator never blocks the session."""
        manager = SessionManager("user-1", failing_generator, store, clock=clock)

        await manager.start_session("Mathematics", "Derivatives")

        unit = manager.next_content()
        assert unit.is_fallback
        assert "Derivatives" in unit.body
        assert unit.difficulty == 5


class TestSubmitInteraction:
    """Test per-interaction scoring and adaptation."""

    @pytest.mark.asyncio
    async def test_requires_active_session(self, manager):
        with pytest.raises(NoActiveSessionError) as exc_info:
            await manager.submit_interaction("hello", 10)
        assert exc_info.value.user_message == "no session to interact with"

    @pytest.mark.asyncio
    async def test_strong_answer_raises_difficulty(self, manager):
        """Test that a fast, confident answer moves difficulty up one level."""
        await manager.start_session("Mathematics", "Derivatives")

        result = await manager.submit_interaction(CONFIDENT_ANSWER, 20)

        assert result.feedback.understanding == 100
        assert result.content.difficulty == 6
        assert result.content.kind == "example"
        assert manager.understanding == 100
        assert manager.pending_content() == 2

    @pytest.mark.asyncio
    async def test_confused_answer_lowers_difficulty(self, manager):
        """Test that a slow request for help moves difficulty down one level."""
        await manager.start_session("Mathematics", "Derivatives")

        result = await manager.submit_interaction("help", 200)

        assert result.feedback.understanding == 50
        assert result.feedback.engagement == 60
        assert len(result.feedback.confusion_points) == 1
        assert "Provide additional examples" in result.feedback.suggested_actions
        assert result.content.difficulty == 4

    @pytest.mark.asyncio
    async def test_explicit_request_picks_content_type(self, manager):
        await manager.start_session("Mathematics", "Derivatives")

        result = await manager.submit_interaction("Can I practice this?", 40)

        assert result.content.kind == "practice"
        assert result.content.interactive

    @pytest.mark.asyncio
    async def test_negative_elapsed_rejected(self, manager):
        await manager.start_session("Mathematics", "Derivatives")
        with pytest.raises(ValueError):
            await manager.submit_interaction("hello", -1)

    @pytest.mark.asyncio
    async def test_emotional_state_reaches_prompt(self, manager, generator):
        await manager.start_session("Mathematics", "Derivatives")

        await manager.submit_interaction("this is hard", 40, emotional_state="frustrated")
        assert "Be extra patient" in generator.last_prompt

        await manager.submit_interaction("this is hard", 40, emotional_state="sleepy")
        assert "Maintain a steady, clear teaching pace." in generator.last_prompt

    @pytest.mark.asyncio
    async def test_content_queue_is_fifo(self, manager):
        await manager.start_session("Mathematics", "Derivatives")
        initial = manager.next_content()

        first = await manager.submit_interaction("hello", 40)
        second = await manager.submit_interaction("hello again", 40)

        assert initial.kind == "explanation"
        assert manager.next_content() is first.content
        assert manager.next_content() is second.content
        assert manager.next_content() is None

    @pytest.mark.asyncio
    async def test_concurrent_submissions_are_serialized(self, manager):
        """Test that overlapping calls on one session both apply."""
        await manager.start_session("Mathematics", "Derivatives")

        results = await asyncio.gather(
            manager.submit_interaction("first", 40),
            manager.submit_interaction("second", 40),
        )

        assert len(results) == 2
        assert manager.pending_content() == 3

    @pytest.mark.asyncio
    async def test_cancelled_interaction_changes_nothing(self, manager, generator):
        """Test that cancelling mid-generation leaves session state untouched."""
        await manager.start_session("Mathematics", "Derivatives")
        generator.gate = asyncio.Event()

        task = asyncio.create_task(manager.submit_interaction(CONFIDENT_ANSWER, 20))
        while len(generator.calls) < 2:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert manager.pending_content() == 1
        assert manager.understanding == 50

        # The session lock was released
        generator.gate = None
        result = await manager.submit_interaction(CONFIDENT_ANSWER, 20)
        assert result.content.difficulty == 6


class TestFeedbackSubscription:
    """Test feedback delivery to subscribers."""

    @pytest.mark.asyncio
    async def test_subscriber_receives_feedback_in_order(self, manager):
        await manager.start_session("Mathematics", "Derivatives")
        subscription = manager.subscribe_feedback()

        first = await manager.submit_interaction("help", 200)
        second = await manager.submit_interaction(CONFIDENT_ANSWER, 20)
        await manager.end_session()

        received = [sample async for sample in subscription]
        assert received == [first.feedback, second.feedback]

    @pytest.mark.asyncio
    async def test_subscribe_requires_session(self, manager):
        with pytest.raises(NoActiveSessionError):
            manager.subscribe_feedback()


class TestAnswerProblem:
    """Test problem answers feeding the controller."""

    @pytest.mark.asyncio
    async def test_correct_answer(self, manager):
        """Test that a correct answer adds 10 understanding and raises difficulty."""
        await manager.start_session("Mathematics", "Derivatives")

        sample = await manager.answer_problem(" option a", "Option A", elapsed_seconds=30)

        assert sample.understanding == 60
        assert manager.understanding == 60
        assert manager.pending_content() == 2
        manager.next_content()
        assert manager.next_content().difficulty == 6

    @pytest.mark.asyncio
    async def test_incorrect_answer(self, manager):
        """Test that a wrong answer removes 5 understanding and lowers difficulty."""
        await manager.start_session("Mathematics", "Derivatives")

        sample = await manager.answer_problem("Option B", "Option A")

        assert sample.understanding == 45
        manager.next_content()
        assert manager.next_content().difficulty == 4

    @pytest.mark.asyncio
    async def test_answer_publishes_feedback(self, manager):
        await manager.start_session("Mathematics", "Derivatives")
        subscription = manager.subscribe_feedback()

        sample = await manager.answer_problem("Option A", "Option A")

        assert subscription.get_nowait() is sample


class TestEndSession:
    """Test session end and progression updates."""

    @pytest.mark.asyncio
    async def test_long_high_scoring_session(self, manager, clock, store):
        """Test that 65 minutes at score 95 unlocks Marathon Learner and Perfectionist."""
        session = await manager.start_session("Mathematics", "Derivatives")
        clock.advance(minutes=65)

        summary = await manager.end_session(session.id, score=95)

        assert summary.duration_minutes == 65
        assert summary.xp_earned == 95
        assert {a.id for a in summary.unlocked_achievements} == {"marathon-learner", "perfectionist"}
        assert summary.ledger.total_study_time_minutes == 65
        assert summary.ledger.weekly_progress_minutes == 65
        assert summary.ledger.sessions_completed == 1
        assert summary.ledger.current_streak_days == 1
        assert summary.ledger.longest_streak_days == 1
        assert summary.subject_progress.progress_percent == 9
        assert summary.subject_progress.time_spent_minutes == 65
        assert summary.subject_progress.last_studied_date == date(2024, 3, 4)

        assert "user-1" in store
        saved = await store.load("user-1")
        assert saved.ledger.total_xp == 95
        assert saved.achievement_ids == {"marathon-learner", "perfectionist"}

    @pytest.mark.asyncio
    async def test_session_is_destroyed(self, manager, clock):
        session = await manager.start_session("Mathematics", "Derivatives")
        await manager.submit_interaction("hello", 40)

        await manager.end_session()

        assert not manager.is_active
        assert session.status == "ended"
        assert session.ended_at == clock()
        assert manager.pending_content() == 0
        assert manager.next_content() is None
        with pytest.raises(NoActiveSessionError):
            await manager.submit_interaction("hello", 40)

    @pytest.mark.asyncio
    async def test_perfectionist_unlocks_once(self, manager, clock):
        first = await run_session(manager, clock, score=95)
        clock.advance(days=1)
        second = await run_session(manager, clock, score=100)

        assert [a.id for a in first.unlocked_achievements] == ["perfectionist"]
        assert second.unlocked_achievements == []
        state = await manager.progression()
        assert [a.id for a in state.achievements] == ["perfectionist"]

    @pytest.mark.asyncio
    async def test_streak_sequence(self, manager, clock):
        """Test that day 1, day 2, day 4 gives streaks 1, 2, 1 with longest 2."""
        streaks = []
        for gap_days in (0, 1, 2):
            clock.advance(days=gap_days)
            summary = await run_session(manager, clock)
            streaks.append(summary.ledger.current_streak_days)

        assert streaks == [1, 2, 1]
        assert (await manager.ledger()).longest_streak_days == 2

    @pytest.mark.asyncio
    async def test_same_day_sessions_keep_streak(self, manager, clock):
        await run_session(manager, clock)
        summary = await run_session(manager, clock)

        assert summary.ledger.current_streak_days == 1
        assert summary.ledger.sessions_completed == 2

    @pytest.mark.asyncio
    async def test_unscored_session_uses_defaults(self, manager, clock):
        summary = await run_session(manager, clock, minutes=20)

        assert summary.score is None
        assert summary.xp_earned == 50
        assert summary.subject_progress.progress_percent == 5
        assert summary.unlocked_achievements == []

    @pytest.mark.asyncio
    async def test_zero_score_earns_defaults(self, manager, clock):
        """Test that a score of 0 earns the default XP and progress like a missing score."""
        summary = await run_session(manager, clock, minutes=10, score=0)

        assert summary.score == 0
        assert summary.xp_earned == 50
        assert summary.subject_progress.progress_percent == 5
        assert summary.ledger.total_xp == 50

    @pytest.mark.asyncio
    async def test_session_history_recorded(self, manager, clock, store):
        session = await manager.start_session("Mathematics", "Derivatives")
        clock.advance(minutes=25)
        await manager.end_session(score=80)

        history = (await store.load("user-1")).recent_sessions
        assert len(history) == 1
        assert history[0].id == session.id
        assert history[0].subject == "Mathematics"
        assert history[0].topics_completed == ["Derivatives"]
        assert history[0].duration_minutes == 25
        assert history[0].score == 80
        assert history[0].timestamp == clock.now

    @pytest.mark.asyncio
    async def test_practice_score_from_answers(self, manager, clock):
        """Test that 3 of 4 correct answers make a session score of 75."""
        await manager.start_session("Mathematics", "Derivatives")
        for selected in ("A", "A", "A", "B"):
            await manager.answer_problem(selected, "A")
        clock.advance(minutes=15)

        summary = await manager.end_session()

        assert summary.problems_answered == 4
        assert summary.problems_correct == 3
        assert summary.score == 75
        assert summary.xp_earned == 75
        assert summary.subject_progress.progress_percent == 7

    @pytest.mark.asyncio
    async def test_duration_override(self, manager, clock):
        await manager.start_session("Mathematics", "Derivatives")
        summary = await manager.end_session(duration_minutes=61)

        assert summary.duration_minutes == 61
        assert [a.id for a in summary.unlocked_achievements] == ["marathon-learner"]

    @pytest.mark.asyncio
    async def test_invalid_score_keeps_session(self, manager):
        await manager.start_session("Mathematics", "Derivatives")

        with pytest.raises(ValueError):
            await manager.end_session(score=120)

        assert manager.is_active

    @pytest.mark.asyncio
    async def test_wrong_session_id(self, manager):
        await manager.start_session("Mathematics", "Derivatives")

        with pytest.raises(NoActiveSessionError):
            await manager.end_session("ls-unknown")
        assert manager.is_active

    @pytest.mark.asyncio
    async def test_end_without_session(self, manager):
        with pytest.raises(NoActiveSessionError):
            await manager.end_session()

    @pytest.mark.asyncio
    async def test_save_failure_commits_nothing(self, manager, clock, store):
        """Test that a failed save keeps the session active and the ledger unchanged."""
        await manager.start_session("Mathematics", "Derivatives")
        clock.advance(minutes=65)
        store.fail = True

        with pytest.raises(PersistenceFailure) as exc_info:
            await manager.end_session(score=95)

        assert "could not save progress" in exc_info.value.user_message
        assert manager.is_active
        ledger = await manager.ledger()
        assert ledger.sessions_completed == 0
        assert ledger.total_xp == 0
        assert "user-1" not in store

        store.fail = False
        summary = await manager.end_session(score=95)
        assert summary.ledger.sessions_completed == 1
        assert len(summary.unlocked_achievements) == 2

    @pytest.mark.asyncio
    async def test_progress_survives_new_manager(self, generator, store, clock):
        """Test that a fresh manager picks up the saved ledger."""
        first = SessionManager("user-1", generator, store, clock=clock)
        await run_session(first, clock, minutes=30, score=80)

        second = SessionManager("user-1", generator, store, clock=clock)
        ledger = await second.ledger()

        assert ledger.total_xp == 80
        assert ledger.total_study_time_minutes == 30


class TestAbandonSession:
    """Test discarding a session without recording progress."""

    @pytest.mark.asyncio
    async def test_abandon_records_nothing(self, manager, clock, store):
        session = await manager.start_session("Mathematics", "Derivatives")
        await manager.submit_interaction("hello", 40)
        clock.advance(minutes=90)

        abandoned = await manager.abandon_session()

        assert abandoned is session
        assert session.status == "ended"
        assert not manager.is_active
        assert manager.pending_content() == 0
        assert (await manager.ledger()).sessions_completed == 0
        assert "user-1" not in store

    @pytest.mark.asyncio
    async def test_abandon_when_idle(self, manager):
        assert await manager.abandon_session() is None


class TestLearningAids:
    """Test problems, visuals and narration."""

    @pytest.mark.asyncio
    async def test_interactive_problem_from_json(self, manager, generator):
        await manager.start_session("Mathematics", "Derivatives")
        generator.responses = [
            'Sure!\n```json\n{"question": "What is d/dx of x^2?", '
            '"options": ["2x", "x", "2", "x^2"], "correctAnswer": "2x", '
            '"explanation": "Power rule", "hints": ["Bring down the exponent"]}\n```'
        ]

        problem = await manager.generate_interactive_problem()

        assert not problem.is_fallback
        assert problem.correct_answer == "2x"
        assert problem.topic == "Derivatives"
        assert problem.difficulty == 5
        assert "general understanding" in generator.last_prompt

    @pytest.mark.asyncio
    async def test_interactive_problem_fallback(self, manager, generator):
        await manager.start_session("Mathematics", "Derivatives")
        generator.responses = ["I cannot produce JSON today"]

        problem = await manager.generate_interactive_problem(difficulty=15)

        assert problem.is_fallback
        assert problem.question == "Practice problem for Derivatives"
        assert problem.options == ["Option A", "Option B", "Option C", "Option D"]
        assert problem.difficulty == 10

    @pytest.mark.asyncio
    async def test_problem_requires_session(self, manager):
        with pytest.raises(NoActiveSessionError):
            await manager.generate_interactive_problem()

    @pytest.mark.asyncio
    async def test_visual_explanation(self, manager, generator):
        await manager.start_session("Mathematics", "Derivatives")
        generator.responses = ["Draw the tangent line at a point on the curve."]

        visual = await manager.generate_visual_explanation("Tangent lines")

        assert visual.visual_type == "diagram"
        assert visual.description == "Draw the tangent line at a point on the curve."
        assert not visual.is_fallback

    @pytest.mark.asyncio
    async def test_narration(self, generator, store, clock):
        """Test that narration skips a failing avatar but keeps the audio."""

        class Synth:
            def __init__(self):
                self.texts = []

            async def synthesize(self, text):
                self.texts.append(text)
                return MediaReference(kind="audio", uri="mem://audio/1", provider="fake")

        class BrokenAvatar:
            async def render(self, text):
                raise RuntimeError("avatar service down")

        synth = Synth()
        manager = SessionManager(
            "user-1", generator, store, synthesizer=synth, avatar=BrokenAvatar(), clock=clock
        )
        await manager.start_session("Mathematics", "Derivatives")

        references = await manager.narrate()

        assert [r.kind for r in references] == ["audio"]
        assert synth.texts == [generator.default]

    @pytest.mark.asyncio
    async def test_narration_unconfigured(self, manager):
        await manager.start_session("Mathematics", "Derivatives")
        assert await manager.narrate() == []


class TestLedgerMaintenance:
    """Test weekly goal, level and dashboard operations."""

    @pytest.mark.asyncio
    async def test_weekly_goal_status(self, manager, clock):
        await run_session(manager, clock, minutes=65)

        status = await manager.weekly_goal_status()

        assert status.goal_minutes == 300
        assert status.progress_minutes == 65
        assert status.progress_percent == 21.67
        assert status.remaining_minutes == 235
        assert status.days_left == 6

    @pytest.mark.asyncio
    async def test_reset_weekly_progress(self, manager, clock, store):
        await run_session(manager, clock, minutes=65)

        ledger = await manager.reset_weekly_progress()

        assert ledger.weekly_progress_minutes == 0
        assert ledger.total_study_time_minutes == 65
        assert (await store.load("user-1")).ledger.weekly_progress_minutes == 0

    @pytest.mark.asyncio
    async def test_set_weekly_goal(self, manager, store):
        ledger = await manager.set_weekly_goal(120)

        assert ledger.weekly_goal_minutes == 120
        assert (await store.load("user-1")).ledger.weekly_goal_minutes == 120

        with pytest.raises(ValueError):
            await manager.set_weekly_goal(0)

    @pytest.mark.asyncio
    async def test_set_level(self, manager):
        assert (await manager.set_level(3)).level == 3
        with pytest.raises(ValueError):
            await manager.set_level(0)

    @pytest.mark.asyncio
    async def test_failed_ledger_save_commits_nothing(self, manager, store):
        store.fail = True
        with pytest.raises(PersistenceFailure):
            await manager.set_weekly_goal(120)
        assert (await manager.ledger()).weekly_goal_minutes == 300

    @pytest.mark.asyncio
    async def test_slow_first_load_does_not_overwrite_write(self, generator, clock):
        """Test that a read racing the first write cannot replace the committed state."""

        class SlowLoadStore(InMemoryProgressionStore):
            def __init__(self):
                super().__init__()
                self.loads = 0

            async def load(self, user_id):
                self.loads += 1
                if self.loads == 1:
                    await asyncio.sleep(0.05)
                return await super().load(user_id)

        store = SlowLoadStore()
        manager = SessionManager("user-1", generator, store, clock=clock)

        reader = asyncio.create_task(manager.ledger())
        await asyncio.sleep(0)
        await manager.set_level(7)
        await reader

        assert (await manager.ledger()).level == 7
        assert store.loads == 1
        assert (await store.load("user-1")).ledger.level == 7

    @pytest.mark.asyncio
    async def test_dashboard(self, manager, clock):
        await run_session(manager, clock, minutes=65, score=95)

        snapshot = await manager.dashboard()

        assert snapshot["weekly_goal"]["progress_minutes"] == 65
        assert snapshot["mastery"]["count"] == 1
        assert len(snapshot["achievements"]) == 2
        assert len(snapshot["recent_sessions"]) == 1
        assert snapshot["recent_sessions"][0]["score"] == 95


class TestTutoringEngine:
    """Test per-user isolation."""

    def test_manager_is_reused(self, engine):
        assert engine.manager("alice") is engine.manager("alice")
        assert engine.manager("alice") is not engine.manager("bob")

    @pytest.mark.asyncio
    async def test_users_are_independent(self, engine, clock):
        alice, bob = engine.manager("alice"), engine.manager("bob")

        await asyncio.gather(
            alice.start_session("Mathematics", "Derivatives"),
            bob.start_session("Physics", "Kinematics"),
        )
        assert sorted(engine.active_users()) == ["alice", "bob"]

        with pytest.raises(SessionAlreadyActiveError):
            await alice.start_session("Chemistry", "Bonds")

        clock.advance(minutes=30)
        await alice.end_session(score=90)

        assert engine.active_users() == ["bob"]
        assert (await alice.ledger()).total_xp == 90
        assert (await bob.ledger()).total_xp == 0

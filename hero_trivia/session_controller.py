"""
Game session controller.

Owns at most one GameSession at a time and is the only code that mutates it.
States move idle -> active <-> paused -> completed; completed is terminal.
"""
import logging
import time
import uuid
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .achievements import AchievementEvaluator
from .events import (
    ANSWER_RESULT, EVENT_NAMES, QUESTION_CHANGED, SESSION_COMPLETED, TIMER_TICK,
    AnswerResult, EventEmitter, QuestionChanged, SessionCompleted, TimerTick
)
from .exceptions import InvalidTransitionError
from .models import (
    SKIPPED, TIMEOUT, AnswerOutcome, Difficulty, GameMode, GameSession, ModeRules,
    PlayerAnswer, Question, SessionConfig, SessionStatus, SessionSummary
)
from .profile_store import PlayerProfileStore
from .question_generator import QuestionGenerator
from .quiz_timer import QuizTimer
from .scoring import PowerUpTracker, accuracy_percent, compute_points, grade_for_accuracy

DEFAULT_STORY_QUESTIONS = 8
DEFAULT_TIME_PER_QUESTION_SEC = 30
DEFAULT_BLITZ_BUDGET_SEC = 60
BLITZ_SCORING_LIMIT_SEC = 10

STORY_LIVES = 3
SURVIVAL_LIVES = 1


def build_rules(mode: GameMode, config: Optional[SessionConfig] = None) -> ModeRules:
    """
    Derive the rules for a mode, applying any per-session overrides.

    Raises:
        ValueError: If an override is not a positive number
    """
    config = config or SessionConfig()
    for name in ("question_count", "time_per_question_sec", "total_time_sec"):
        value = getattr(config, name)
        if value is not None and value < 1:
            raise ValueError(f"{name} must be at least 1, got {value}")

    per_question = config.time_per_question_sec or DEFAULT_TIME_PER_QUESTION_SEC

    if mode is GameMode.BLITZ:
        return ModeRules(
            question_count=None,
            lives=0,
            life_limited=False,
            time_per_question_sec=None,
            total_time_sec=config.total_time_sec or DEFAULT_BLITZ_BUDGET_SEC,
            scoring_time_limit_sec=BLITZ_SCORING_LIMIT_SEC
        )
    if mode is GameMode.SURVIVAL:
        return ModeRules(
            question_count=None,
            lives=SURVIVAL_LIVES,
            life_limited=True,
            time_per_question_sec=per_question,
            total_time_sec=None,
            scoring_time_limit_sec=per_question
        )
    # Story, and multiplayer played locally with story rules
    return ModeRules(
        question_count=config.question_count or DEFAULT_STORY_QUESTIONS,
        lives=STORY_LIVES,
        life_limited=True,
        time_per_question_sec=per_question,
        total_time_sec=None,
        scoring_time_limit_sec=per_question
    )


class MultiplayerRoom:
    """
    Placeholder collaborator for multiplayer rooms.

    Receives every engine event of a multiplayer session. Relaying them to
    opponents belongs to a transport layer that is not part of this package.
    """

    def __init__(self, room_id: str):
        self.room_id = room_id
        self.published: List[Tuple[str, Any]] = []
        self.logger = logging.getLogger(__name__)

    def publish(self, event: str, payload: Any) -> None:
        self.published.append((event, payload))
        self.logger.debug(f"Room {self.room_id} received {event}")


class GameSessionController:
    """Drives a single game session through its lifecycle."""

    def __init__(
        self,
        generator: QuestionGenerator,
        profile_store: Optional[PlayerProfileStore] = None,
        evaluator: Optional[AchievementEvaluator] = None,
        emitter: Optional[EventEmitter] = None,
        room: Optional[MultiplayerRoom] = None,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = QuizTimer.DEFAULT_TICK_SECONDS,
        auto_schedule: bool = True
    ):
        """
        Initialize the controller.

        Args:
            generator: Source of questions
            profile_store: Store that receives per-answer and per-session results
            evaluator: Achievement evaluator run when a session completes
            emitter: Event emitter for presentation layers
            room: Collaborator for multiplayer sessions
            clock: Monotonic clock shared with the timers
            tick_seconds: Timer tick resolution
            auto_schedule: Let timers schedule themselves on the running event loop
        """
        self.logger = logging.getLogger(__name__)
        self.generator = generator
        self.profile_store = profile_store
        self.evaluator = evaluator
        self.emitter = emitter or EventEmitter()
        self.room = room
        self._clock = clock

        self.question_timer = QuizTimer("question", tick_seconds, clock, auto_schedule)
        self.session_timer = QuizTimer("blitz", tick_seconds, clock, auto_schedule)
        self.power_ups = PowerUpTracker()

        self.session: Optional[GameSession] = None
        self._resolved = False
        self._question_started_at = 0.0
        self._question_paused_sec = 0.0
        self._paused_at: Optional[float] = None
        self._room_handlers: List[Tuple[str, Callable[[Any], None]]] = []

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        if self.session is None:
            return SessionStatus.IDLE
        return self.session.status

    @property
    def current_question(self) -> Optional[Question]:
        if self.session is None or self.session.status is SessionStatus.COMPLETED:
            return None
        return self.session.current_question

    @property
    def is_resolved(self) -> bool:
        """Whether the current question already has an answer recorded."""
        return self._resolved

    def progress(self) -> Optional[Dict[str, Any]]:
        """
        Get progress information for the current session.

        Returns:
            Dictionary with progress info, None if no session has started
        """
        session = self.session
        if session is None:
            return None

        return {
            'session_id': session.id,
            'mode': session.mode.value,
            'difficulty': session.difficulty.value,
            'status': session.status.value,
            'current_question': session.current_index + 1,
            'total_questions': session.rules.question_count,
            'answered': len(session.answers),
            'score': session.score,
            'lives': session.lives,
            'streak': session.streak,
            'best_streak': session.best_streak,
            'time_remaining': session.time_remaining,
            'awaiting_answer': not self._resolved and session.status is not SessionStatus.COMPLETED
        }

    def summary(self) -> Optional[SessionSummary]:
        session = self.session
        if session is None:
            return None

        accuracy = accuracy_percent(session.answers)
        return SessionSummary(
            session_id=session.id,
            mode=session.mode,
            score=session.score,
            accuracy=accuracy,
            best_streak=session.best_streak,
            grade=grade_for_accuracy(accuracy),
            questions_answered=len(session.answers),
            correct_answers=session.correct_count,
            timeouts=sum(1 for a in session.answers if a.timed_out),
            skips=sum(1 for a in session.answers if a.skipped),
            duration_sec=self._play_time_sec(),
            ended_early=session.ended_early
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(
        self,
        mode: Union[GameMode, str],
        difficulty: Union[Difficulty, str],
        config: Optional[SessionConfig] = None
    ) -> GameSession:
        """
        Start a new session.

        Args:
            mode: Game mode, as an enum member or its value
            difficulty: Difficulty, as an enum member or its value
            config: Optional overrides for question count and time limits

        Returns:
            The new active session

        Raises:
            InvalidTransitionError: If a session is already active or paused
            ValueError: If the mode, difficulty or config is invalid
        """
        if self.session is not None and self.session.status in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
            raise InvalidTransitionError(
                f"Session {self.session.id} is still {self.session.status.value}; finish it before starting another"
            )

        mode = GameMode(mode)
        difficulty = Difficulty(difficulty)
        rules = build_rules(mode, config)

        if rules.unbounded:
            questions = [self.generator.generate(difficulty)]
        else:
            questions = self.generator.generate_batch(rules.question_count, difficulty)

        now = self._clock()
        self.session = GameSession(
            id=uuid.uuid4().hex[:12],
            mode=mode,
            difficulty=difficulty,
            rules=rules,
            questions=questions,
            lives=rules.lives,
            status=SessionStatus.ACTIVE,
            started_at=now
        )
        self._paused_at = None
        self.power_ups.clear()

        if mode is GameMode.MULTIPLAYER and self.room is not None:
            self._attach_room()

        self.logger.info(
            f"Started {mode.value} session {self.session.id} at {difficulty.value} difficulty",
            extra={
                'event_type': 'session_started',
                'session_id': self.session.id,
                'mode': mode.value,
                'difficulty': difficulty.value,
                'question_count': rules.question_count,
                'lives': rules.lives,
                'timestamp': time.time()
            }
        )

        if rules.total_time_sec is not None:
            self.session.time_remaining = rules.total_time_sec
            self.session_timer.arm(rules.total_time_sec, self._on_budget_expired, self._on_budget_tick)

        self._begin_question()
        return self.session

    def submit_answer(self, index: int, response_time_ms: Optional[float] = None) -> PlayerAnswer:
        """
        Answer the current question.

        Args:
            index: Chosen option index
            response_time_ms: Time taken; measured from the question start when None

        Returns:
            The recorded answer

        Raises:
            InvalidTransitionError: If the session is not active or the question is already resolved
            ValueError: If the index is not a valid option
        """
        session = self._require_active("submit an answer")
        self._require_unresolved()

        question = session.current_question
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(question.options):
            raise ValueError(f"Option index must be between 0 and {len(question.options) - 1}, got {index!r}")

        if response_time_ms is None:
            response_time_ms = self._question_elapsed_ms()

        return self._resolve(index, index == question.correct_index, response_time_ms)

    def timeout(self) -> PlayerAnswer:
        """Resolve the current question as timed out: incorrect, with no time credit."""
        session = self._require_active("time out")
        self._require_unresolved()
        limit_sec = session.rules.time_per_question_sec or session.rules.scoring_time_limit_sec
        return self._resolve(TIMEOUT, False, limit_sec * 1000)

    def skip(self) -> PlayerAnswer:
        """
        Skip the current question.

        A skip scores nothing and resets the streak, counts as an answered
        question, costs no life, and advances immediately.
        """
        self._require_active("skip")
        self._require_unresolved()
        answer = self._resolve(SKIPPED, False, self._question_elapsed_ms())
        if self.session.status is SessionStatus.ACTIVE:
            self.next_question()
        return answer

    def next_question(self) -> Question:
        """
        Advance to the next question and rearm the per-question timer.

        Raises:
            InvalidTransitionError: If the session is not active or the current question is unanswered
        """
        session = self._require_active("advance")
        if not self._resolved:
            raise InvalidTransitionError("The current question has not been answered yet")

        if session.rules.unbounded:
            session.questions.append(self.generator.generate(session.difficulty))
        elif session.current_index + 1 >= len(session.questions):
            raise InvalidTransitionError("No questions remain in this session")

        session.current_index += 1
        self._begin_question()
        return session.current_question

    def pause(self) -> None:
        session = self._require_session("pause")
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidTransitionError(f"Cannot pause a {session.status.value} session")

        now = self._clock()
        session.status = SessionStatus.PAUSED
        self._paused_at = now
        self.question_timer.pause()
        self.session_timer.pause()
        self.power_ups.freeze(now)

        self.logger.info(
            f"Paused session {session.id}",
            extra={
                'event_type': 'session_paused',
                'session_id': session.id,
                'timestamp': time.time()
            }
        )

    def resume(self) -> None:
        session = self._require_session("resume")
        if session.status is not SessionStatus.PAUSED:
            raise InvalidTransitionError(f"Cannot resume a {session.status.value} session")

        now = self._clock()
        self._close_pause(now)
        session.status = SessionStatus.ACTIVE
        self.question_timer.resume()
        self.session_timer.resume()
        self.power_ups.thaw(now)

        self.logger.info(
            f"Resumed session {session.id}",
            extra={
                'event_type': 'session_resumed',
                'session_id': session.id,
                'timestamp': time.time()
            }
        )

    def complete(self) -> SessionSummary:
        """Finish the session normally."""
        self._require_open("complete")
        return self._finish(ended_early=False)

    def end_early(self) -> SessionSummary:
        """Finish the session at the player's request."""
        self._require_open("end")
        return self._finish(ended_early=True)

    def abandon(self) -> None:
        """
        Drop the session without finalizing it.

        No achievements are evaluated and no session aggregates are recorded;
        timers are cancelled so nothing fires against it afterwards.
        """
        session = self._require_open("abandon")
        now = self._clock()
        self._close_pause(now)
        self._stop_timers()
        session.status = SessionStatus.COMPLETED
        session.abandoned = True
        session.ended_early = True
        session.ended_at = now
        self._detach_room()

        self.logger.info(
            f"Abandoned session {session.id}",
            extra={
                'event_type': 'session_abandoned',
                'session_id': session.id,
                'answered': len(session.answers),
                'timestamp': time.time()
            }
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_session(self, action: str) -> GameSession:
        if self.session is None:
            raise InvalidTransitionError(f"Cannot {action}: no session has been started")
        return self.session

    def _require_open(self, action: str) -> GameSession:
        session = self._require_session(action)
        if session.status is SessionStatus.COMPLETED:
            raise InvalidTransitionError(f"Cannot {action}: session {session.id} is completed")
        return session

    def _require_active(self, action: str) -> GameSession:
        session = self._require_session(action)
        if session.status is not SessionStatus.ACTIVE:
            raise InvalidTransitionError(f"Cannot {action}: session {session.id} is {session.status.value}")
        return session

    def _require_unresolved(self) -> None:
        if self._resolved:
            raise InvalidTransitionError("The current question has already been answered")

    def _begin_question(self) -> None:
        session = self.session
        self._resolved = False
        self._question_started_at = self._clock()
        self._question_paused_sec = 0.0

        limit = session.rules.time_per_question_sec
        if limit is not None:
            session.time_remaining = limit
            self.question_timer.arm(limit, self._on_question_expired, self._on_question_tick)

        self.emitter.emit(QUESTION_CHANGED, QuestionChanged(
            session_id=session.id,
            question=session.current_question,
            index=session.current_index,
            total=session.rules.question_count,
            time_limit_sec=limit
        ))

    def _resolve(self, chosen: Union[int, AnswerOutcome], is_correct: bool, response_time_ms: float) -> PlayerAnswer:
        session = self.session
        rules = session.rules
        question = session.current_question
        self.question_timer.cancel()

        now = self._clock()
        power_up_activated = False
        if is_correct:
            session.streak += 1
            session.best_streak = max(session.best_streak, session.streak)
            multiplier = self.power_ups.current_multiplier(now) if session.mode is GameMode.BLITZ else 1.0
            points = compute_points(
                question.points, True, response_time_ms,
                rules.scoring_time_limit_sec * 1000, session.streak, multiplier
            )
            if session.mode is GameMode.BLITZ:
                power_up_activated = self.power_ups.on_streak(session.streak, now)
        else:
            session.streak = 0
            points = 0
            if rules.life_limited and chosen is not SKIPPED:
                session.lives = max(0, session.lives - 1)

        session.score += points
        answer = PlayerAnswer(
            question_id=question.id,
            chosen=chosen,
            is_correct=is_correct,
            response_time_ms=int(round(response_time_ms)),
            points_earned=points,
            archetype=question.archetype
        )
        session.answers.append(answer)
        self._resolved = True

        if self.profile_store is not None:
            self.profile_store.record_answer(answer)

        self.logger.debug(
            f"Session {session.id} question {session.current_index + 1}: "
            f"correct={is_correct}, points={points}, streak={session.streak}, lives={session.lives}"
        )

        self.emitter.emit(ANSWER_RESULT, AnswerResult(
            session_id=session.id,
            question_id=question.id,
            correct=is_correct,
            points_earned=points,
            explanation=question.explanation,
            correct_index=question.correct_index,
            score=session.score,
            streak=session.streak,
            lives=session.lives,
            timed_out=answer.timed_out,
            skipped=answer.skipped,
            power_up_activated=power_up_activated
        ))

        if rules.life_limited and session.lives == 0:
            self._finish(ended_early=False)
        elif not rules.unbounded and session.current_index + 1 >= len(session.questions):
            self._finish(ended_early=False)

        return answer

    def _finish(self, ended_early: bool) -> SessionSummary:
        session = self.session
        now = self._clock()
        self._close_pause(now)
        self._stop_timers()
        session.status = SessionStatus.COMPLETED
        session.ended_at = now
        session.ended_early = ended_early

        summary = self.summary()
        unlocked = []
        if self.profile_store is not None:
            self.profile_store.record_session(session, summary)
            if self.evaluator is not None:
                unlocked = self.evaluator.check(session, self.profile_store.profile)
            self.profile_store.save()

        self.logger.info(
            f"Completed session {session.id}: score {session.score}, grade {summary.grade}, "
            f"{summary.correct_answers}/{summary.questions_answered} correct",
            extra={
                'event_type': 'session_completed',
                'session_id': session.id,
                'score': session.score,
                'grade': summary.grade,
                'ended_early': ended_early,
                'unlocked': [a.id for a in unlocked],
                'timestamp': time.time()
            }
        )

        self.emitter.emit(SESSION_COMPLETED, SessionCompleted(
            session_id=session.id,
            score=summary.score,
            accuracy=summary.accuracy,
            best_streak=summary.best_streak,
            grade=summary.grade,
            summary=summary,
            unlocked=unlocked
        ))
        self._detach_room()
        return summary

    def _stop_timers(self) -> None:
        self.question_timer.cancel()
        self.session_timer.cancel()
        self.power_ups.clear()

    def _close_pause(self, now: float) -> None:
        if self._paused_at is None:
            return
        paused_for = now - self._paused_at
        self.session.paused_sec += paused_for
        self._question_paused_sec += paused_for
        self._paused_at = None

    def _question_elapsed_ms(self) -> float:
        elapsed = self._clock() - self._question_started_at - self._question_paused_sec
        return max(0.0, elapsed) * 1000

    def _play_time_sec(self) -> float:
        session = self.session
        if session.ended_at is not None:
            return session.duration_sec
        paused = session.paused_sec
        if self._paused_at is not None:
            paused += self._clock() - self._paused_at
        return max(0.0, self._clock() - session.started_at - paused)

    def _on_question_expired(self) -> None:
        try:
            self.timeout()
        except InvalidTransitionError as e:
            self.logger.warning(
                f"Ignored question timer expiry: {e}",
                extra={'event_type': 'timer_misfire', 'timer_name': 'question', 'timestamp': time.time()}
            )

    def _on_budget_expired(self) -> None:
        session = self.session
        if session is None or session.status is not SessionStatus.ACTIVE:
            self.logger.warning(
                "Ignored blitz timer expiry: no active session",
                extra={'event_type': 'timer_misfire', 'timer_name': 'blitz', 'timestamp': time.time()}
            )
            return
        session.time_remaining = 0
        self._finish(ended_early=False)

    def _on_question_tick(self, remaining: int) -> None:
        self._emit_tick(remaining)

    def _on_budget_tick(self, remaining: int) -> None:
        self._emit_tick(remaining)

    def _emit_tick(self, remaining: int) -> None:
        if self.session is None:
            return
        self.session.time_remaining = remaining
        self.emitter.emit(TIMER_TICK, TimerTick(session_id=self.session.id, remaining=remaining))

    def _attach_room(self) -> None:
        self._detach_room()
        for name in EVENT_NAMES:
            handler = partial(self.room.publish, name)
            self.emitter.on(name, handler)
            self._room_handlers.append((name, handler))

    def _detach_room(self) -> None:
        for name, handler in self._room_handlers:
            self.emitter.off(name, handler)
        self._room_handlers = []

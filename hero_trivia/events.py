"""
Typed events emitted by the engine for presentation layers.
"""
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .models import Achievement, Question, SessionSummary

QUESTION_CHANGED = "question-changed"
ANSWER_RESULT = "answer-result"
SESSION_COMPLETED = "session-completed"
ACHIEVEMENT_UNLOCKED = "achievement-unlocked"
TIMER_TICK = "timer-tick"

EVENT_NAMES = (QUESTION_CHANGED, ANSWER_RESULT, SESSION_COMPLETED, ACHIEVEMENT_UNLOCKED, TIMER_TICK)

logger = logging.getLogger(__name__)


@dataclass
class QuestionChanged:
    session_id: str
    question: Question
    index: int
    total: Optional[int]
    time_limit_sec: Optional[int]


@dataclass
class AnswerResult:
    session_id: str
    question_id: str
    correct: bool
    points_earned: int
    explanation: str
    correct_index: int
    score: int
    streak: int
    lives: int
    timed_out: bool = False
    skipped: bool = False
    power_up_activated: bool = False


@dataclass
class SessionCompleted:
    session_id: str
    score: int
    accuracy: float
    best_streak: int
    grade: str
    summary: SessionSummary
    unlocked: List[Achievement] = field(default_factory=list)


@dataclass
class Notification:
    """A transient message the presentation layer shows and then dismisses."""
    id: int
    title: str
    message: str
    created_at: float
    duration_sec: float

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.duration_sec


@dataclass
class AchievementUnlocked:
    profile_id: str
    achievement: Achievement
    notification: Optional[Notification] = None


@dataclass
class TimerTick:
    session_id: str
    remaining: int


Handler = Callable[[Any], Any]


class EventEmitter:
    """Synchronous publish/subscribe for engine events."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, event: str, handler: Handler) -> None:
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {event}")
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        """
        Deliver a payload to every handler registered for the event.

        A failing handler is logged and does not stop delivery to the others,
        nor does it propagate into the engine.
        """
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception as e:
                logger.error(
                    f"Event handler for {event} failed: {e}",
                    exc_info=True,
                    extra={
                        'event_type': 'event_handler_error',
                        'event_name': event,
                        'timestamp': time.time()
                    }
                )

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))


class NotificationCenter:
    """Queue of transient notifications that auto-dismiss after a fixed duration."""

    DEFAULT_DURATION_SEC = 5.0

    def __init__(self, duration_sec: float = DEFAULT_DURATION_SEC, clock: Callable[[], float] = time.time):
        self.duration_sec = duration_sec
        self._clock = clock
        self._ids = itertools.count(1)
        self._items: List[Notification] = []

    def push(self, title: str, message: str) -> Notification:
        now = self._clock()
        self._items = [n for n in self._items if not n.is_expired(now)]
        notification = Notification(
            id=next(self._ids),
            title=title,
            message=message,
            created_at=now,
            duration_sec=self.duration_sec
        )
        self._items.append(notification)
        return notification

    def active(self) -> List[Notification]:
        """Return notifications still on screen, dropping expired ones."""
        now = self._clock()
        self._items = [n for n in self._items if not n.is_expired(now)]
        return list(self._items)

    def dismiss(self, notification_id: int) -> bool:
        before = len(self._items)
        self._items = [n for n in self._items if n.id != notification_id]
        return len(self._items) < before

    def __len__(self) -> int:
        return len(self._items)

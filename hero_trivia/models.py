"""
Core data models for the Hero Trivia game engine.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import time


class Difficulty(Enum):
    """Question and session difficulty levels."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Archetype(Enum):
    """Kinds of question the generator can build from a subject."""
    IDENTITY = "identity"
    POWERS = "powers"
    REAL_NAME = "realName"
    FIRST_APPEARANCE = "firstAppearance"
    CREATORS = "creators"
    TRIVIA = "trivia"


class GameMode(Enum):
    """Playable game modes."""
    STORY = "story"
    BLITZ = "blitz"
    SURVIVAL = "survival"
    MULTIPLAYER = "multiplayer"


class SessionStatus(Enum):
    """Enumeration of possible game session states."""
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class AnswerOutcome(Enum):
    """Sentinels recorded in place of an option index."""
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


TIMEOUT = AnswerOutcome.TIMEOUT
SKIPPED = AnswerOutcome.SKIPPED


@dataclass
class FirstAppearance:
    """Comic issue and year a subject first appeared in."""
    comic: str
    year: int


@dataclass
class Subject:
    """A character from the trivia dataset."""
    id: int
    name: str
    real_name: str
    powers: List[str]
    first_appearance: FirstAppearance
    creators: List[str]
    facts: List[str]
    category: str = "hero"
    image_url: Optional[str] = None


@dataclass
class Question:
    """Represents a single generated quiz question."""
    id: str
    archetype: Archetype
    difficulty: Difficulty
    prompt: str
    options: List[str]
    correct_index: int
    explanation: str
    points: int
    subject: Subject
    image_url: Optional[str] = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


@dataclass(frozen=True)
class PlayerAnswer:
    """An immutable record of how one question was resolved."""
    question_id: str
    chosen: Union[int, AnswerOutcome]
    is_correct: bool
    response_time_ms: int
    points_earned: int
    archetype: Archetype
    timestamp: float = field(default_factory=time.time)

    @property
    def timed_out(self) -> bool:
        return self.chosen is AnswerOutcome.TIMEOUT

    @property
    def skipped(self) -> bool:
        return self.chosen is AnswerOutcome.SKIPPED


@dataclass
class SessionConfig:
    """Per-session overrides passed to start()."""
    question_count: Optional[int] = None
    time_per_question_sec: Optional[int] = None
    total_time_sec: Optional[int] = None


@dataclass
class GameSettings:
    """Host-wide defaults applied to new sessions."""
    question_count: int = 8
    time_per_question_sec: int = 30
    blitz_budget_sec: int = 60
    tick_seconds: float = 1.0
    advance_delay_sec: float = 3.0
    history_limit: int = 20
    dataset_path: Optional[str] = None
    profile_directory: str = "./profiles/"


@dataclass
class ModeRules:
    """Rules derived from a game mode and its session config."""
    question_count: Optional[int]
    lives: int
    life_limited: bool
    time_per_question_sec: Optional[int]
    total_time_sec: Optional[int]
    scoring_time_limit_sec: int

    @property
    def unbounded(self) -> bool:
        return self.question_count is None


@dataclass
class GameSession:
    """Represents one play-through, from start to completion."""
    id: str
    mode: GameMode
    difficulty: Difficulty
    rules: ModeRules
    questions: List[Question] = field(default_factory=list)
    current_index: int = 0
    score: int = 0
    lives: int = 0
    streak: int = 0
    best_streak: int = 0
    time_remaining: float = 0
    status: SessionStatus = SessionStatus.ACTIVE
    answers: List[PlayerAnswer] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None
    ended_early: bool = False
    abandoned: bool = False
    paused_sec: float = 0.0

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def correct_count(self) -> int:
        return sum(1 for a in self.answers if a.is_correct)

    @property
    def duration_sec(self) -> float:
        """Play time excluding pauses; 0 until the session has ended."""
        if self.ended_at is None:
            return 0.0
        return max(0.0, self.ended_at - self.started_at - self.paused_sec)


@dataclass
class SessionSummary:
    """Final results of a completed session."""
    session_id: str
    mode: GameMode
    score: int
    accuracy: float
    best_streak: int
    grade: str
    questions_answered: int
    correct_answers: int
    timeouts: int
    skips: int
    duration_sec: float
    ended_early: bool = False


@dataclass
class Achievement:
    """A one-time-unlockable milestone."""
    id: str
    name: str
    description: str
    rarity: str
    points: int
    criterion: str
    unlocked_at: Optional[float] = None


@dataclass
class PlayerStatistics:
    """Lifetime statistics accumulated across sessions."""
    total_questions_answered: int = 0
    correct_answers: int = 0
    average_response_time_ms: float = 0.0
    best_streak: int = 0
    total_time_played_sec: float = 0.0
    favorite_category: str = "general"
    timeouts: int = 0
    skips: int = 0
    fast_answers: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        if self.total_questions_answered == 0:
            return 0.0
        return self.correct_answers / self.total_questions_answered * 100


@dataclass
class PlayerProfile:
    """The durable, device-scoped record of one player."""
    id: str
    display_name: str
    level: int = 1
    experience: int = 0
    statistics: PlayerStatistics = field(default_factory=PlayerStatistics)
    total_score: int = 0
    games_played: int = 0
    achievements: List[Achievement] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)

    def has_achievement(self, achievement_id: str) -> bool:
        return any(a.id == achievement_id for a in self.achievements)

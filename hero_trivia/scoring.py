"""
Scoring rules for the Hero Trivia engine.

Points for a correct answer are the question's base value scaled by three
multipliers: the streak multiplier (from the streak *including* this answer),
a speed bonus relative to the question's time limit, and any active power-up.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Difficulty, PlayerAnswer

BASE_POINTS = {
    Difficulty.EASY: 10,
    Difficulty.MEDIUM: 20,
    Difficulty.HARD: 30,
}

# (minimum streak, multiplier), highest first
STREAK_MULTIPLIERS = [(10, 3.0), (5, 2.0), (3, 1.5)]

# (fraction of the time limit, bonus), fastest first
TIME_BONUSES = [(0.3, 1.5), (0.5, 1.2)]

GRADE_THRESHOLDS = [(90, "S"), (80, "A"), (70, "B"), (60, "C")]
LOWEST_GRADE = "D"


def base_points(difficulty: Difficulty) -> int:
    return BASE_POINTS[difficulty]


def streak_multiplier(streak: int) -> float:
    for minimum, multiplier in STREAK_MULTIPLIERS:
        if streak >= minimum:
            return multiplier
    return 1.0


def time_bonus(response_time_ms: float, time_limit_ms: float) -> float:
    if time_limit_ms <= 0:
        return 1.0
    for fraction, bonus in TIME_BONUSES:
        if response_time_ms < time_limit_ms * fraction:
            return bonus
    return 1.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_points(
    base: int,
    is_correct: bool,
    response_time_ms: float,
    time_limit_ms: float,
    streak_after_answer: int,
    active_multiplier: float = 1.0
) -> int:
    """
    Compute the points earned for one answer.

    Args:
        base: Base point value of the question
        is_correct: Whether the answer was correct (False for timeouts)
        response_time_ms: Time taken to answer
        time_limit_ms: Time allowed for the question
        streak_after_answer: Streak length counting this answer
        active_multiplier: Multiplier from an active power-up

    Returns:
        Integer points, 0 for an incorrect answer
    """
    if not is_correct:
        return 0
    raw = (base
           * streak_multiplier(streak_after_answer)
           * time_bonus(response_time_ms, time_limit_ms)
           * active_multiplier)
    return round_half_up(raw)


def accuracy_percent(answers: Iterable[PlayerAnswer]) -> float:
    """Percentage of answers that were correct; skips and timeouts count as answered."""
    total = 0
    correct = 0
    for answer in answers:
        total += 1
        if answer.is_correct:
            correct += 1
    if total == 0:
        return 0.0
    return correct * 100 / total


def grade_for_accuracy(accuracy: float) -> str:
    for minimum, grade in GRADE_THRESHOLDS:
        if accuracy >= minimum:
            return grade
    return LOWEST_GRADE


@dataclass(frozen=True)
class PowerUp:
    """A temporary score multiplier."""
    name: str
    multiplier: float
    duration_sec: float


DOUBLE_POINTS = PowerUp(name="double_points", multiplier=2.0, duration_sec=10.0)


@dataclass
class ActivePowerUp:
    power_up: PowerUp
    expires_at: float

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


class PowerUpTracker:
    """Activates a power-up every N consecutive correct answers and expires it by play time."""

    def __init__(self, power_up: PowerUp = DOUBLE_POINTS, trigger_every: int = 5):
        self.power_up = power_up
        self.trigger_every = trigger_every
        self._active: Optional[ActivePowerUp] = None
        self._frozen_at: Optional[float] = None

    def current_multiplier(self, now: float) -> float:
        if self._active is not None and self._active.is_active(now):
            return self._active.power_up.multiplier
        return 1.0

    def on_streak(self, streak: int, now: float) -> bool:
        """
        Activate the power-up when the streak reaches a multiple of trigger_every.

        Returns:
            True if the power-up was (re)activated
        """
        if streak > 0 and self.trigger_every > 0 and streak % self.trigger_every == 0:
            self._active = ActivePowerUp(self.power_up, now + self.power_up.duration_sec)
            return True
        return False

    def freeze(self, now: float) -> None:
        if self._frozen_at is None:
            self._frozen_at = now

    def thaw(self, now: float) -> None:
        # Paused time does not count against the power-up
        if self._frozen_at is not None and self._active is not None:
            self._active.expires_at += now - self._frozen_at
        self._frozen_at = None

    def clear(self) -> None:
        self._active = None
        self._frozen_at = None

    @property
    def active(self) -> Optional[ActivePowerUp]:
        return self._active

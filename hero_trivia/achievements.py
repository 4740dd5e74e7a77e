"""
Achievement catalog and evaluator.
"""
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .events import ACHIEVEMENT_UNLOCKED, AchievementUnlocked, EventEmitter, NotificationCenter
from .exceptions import AlreadyUnlockedError
from .models import Achievement, GameSession, PlayerProfile
from .profile_store import level_for_experience

logger = logging.getLogger(__name__)

SPEED_DEMON_MS = 2000
SPEED_DEMON_COUNT = 10
TIME_LORD_SEC = 60


@dataclass(frozen=True)
class AchievementRule:
    achievement: Achievement
    predicate: Callable[[GameSession, PlayerProfile], bool]


def _all_correct(session: GameSession, profile: PlayerProfile) -> bool:
    return (not session.ended_early and len(session.answers) > 0
            and all(a.is_correct for a in session.answers))


def _fast_correct_answers(session: GameSession) -> int:
    return sum(1 for a in session.answers if a.is_correct and a.response_time_ms < SPEED_DEMON_MS)


def _fixed_quiz_under_a_minute(session: GameSession, profile: PlayerProfile) -> bool:
    count = session.rules.question_count
    return (count is not None and not session.ended_early
            and len(session.answers) == count
            and session.duration_sec < TIME_LORD_SEC)


CATALOG: List[AchievementRule] = [
    AchievementRule(
        Achievement("first_question", "First Steps", "Answer your first question",
                    "common", 10, "Answer 1 question"),
        lambda s, p: p.statistics.total_questions_answered >= 1
    ),
    AchievementRule(
        Achievement("first_quiz", "Hero Initiate", "Complete your first quiz",
                    "common", 50, "Complete 1 quiz"),
        lambda s, p: p.games_played >= 1
    ),
    AchievementRule(
        Achievement("perfect_score", "Perfect Hero", "Get 100% on a quiz",
                    "rare", 200, "Answer every question in a quiz correctly"),
        _all_correct
    ),
    AchievementRule(
        Achievement("streak_5", "On a Roll", "Answer 5 questions in a row correctly",
                    "common", 50, "Reach a streak of 5"),
        lambda s, p: s.best_streak >= 5
    ),
    AchievementRule(
        Achievement("streak_10", "Unstoppable", "Answer 10 questions in a row correctly",
                    "rare", 100, "Reach a streak of 10"),
        lambda s, p: s.best_streak >= 10
    ),
    AchievementRule(
        Achievement("streak_master", "Streak Master", "Answer 15 questions in a row correctly",
                    "epic", 250, "Reach a streak of 15"),
        lambda s, p: s.best_streak >= 15
    ),
    AchievementRule(
        Achievement("score_1000", "Rising Star", "Score 1,000 points in one quiz",
                    "rare", 100, "Score at least 1000 in a session"),
        lambda s, p: s.score >= 1000
    ),
    AchievementRule(
        Achievement("score_5000", "Living Legend", "Score 5,000 points in one quiz",
                    "epic", 300, "Score at least 5000 in a session"),
        lambda s, p: s.score >= 5000
    ),
    AchievementRule(
        Achievement("speed_demon", "Speed Demon", "Answer 10 questions in under 2 seconds each",
                    "rare", 150, "10 correct answers under 2s in one quiz"),
        lambda s, p: _fast_correct_answers(s) >= SPEED_DEMON_COUNT
    ),
    AchievementRule(
        Achievement("time_lord", "Time Lord", "Complete a full quiz in under 60 seconds",
                    "epic", 500, "Finish every question of a fixed-length quiz within 60s"),
        _fixed_quiz_under_a_minute
    ),
    AchievementRule(
        Achievement("quiz_veteran", "Quiz Veteran", "Complete 10 quizzes",
                    "rare", 300, "Complete 10 quizzes"),
        lambda s, p: p.games_played >= 10
    ),
    AchievementRule(
        Achievement("marvel_master", "Marvel Master", "Earn 10,000 total points",
                    "legendary", 1000, "Reach 10000 lifetime points"),
        lambda s, p: p.total_score >= 10000
    ),
    # Evaluated last so unlocks from this pass count towards it
    AchievementRule(
        Achievement("collector", "Collector", "Unlock 5 achievements",
                    "rare", 150, "Hold 5 unlocked achievements"),
        lambda s, p: len(p.achievements) >= 5
    ),
]


def get_catalog() -> List[Achievement]:
    """Return copies of every catalog achievement, none unlocked."""
    return [dataclasses.replace(rule.achievement) for rule in CATALOG]


def grant(profile: PlayerProfile, achievement: Achievement, now: Optional[float] = None) -> Achievement:
    """
    Append an unlocked copy of the achievement and award its experience.

    Raises:
        AlreadyUnlockedError: If the profile already holds the achievement
    """
    if profile.has_achievement(achievement.id):
        raise AlreadyUnlockedError(f"Achievement {achievement.id} already unlocked for {profile.id}")
    unlocked = dataclasses.replace(achievement, unlocked_at=now if now is not None else time.time())
    profile.achievements.append(unlocked)
    profile.experience += achievement.points
    profile.level = level_for_experience(profile.experience)
    return unlocked


class AchievementEvaluator:
    """Evaluates the catalog against a finished session and the player's lifetime record."""

    def __init__(
        self,
        emitter: Optional[EventEmitter] = None,
        notifications: Optional[NotificationCenter] = None,
        rules: Optional[List[AchievementRule]] = None,
        clock: Callable[[], float] = time.time
    ):
        self.emitter = emitter
        self.notifications = notifications
        self.rules = rules if rules is not None else CATALOG
        self._clock = clock

    def check(self, session: GameSession, profile: PlayerProfile) -> List[Achievement]:
        """
        Unlock every rule the session and profile now satisfy.

        Safe to call repeatedly: rules already unlocked are skipped, so nothing
        is granted twice.

        Args:
            session: The just-finished session
            profile: The player's profile, mutated in place

        Returns:
            Achievements unlocked by this call
        """
        unlocked: List[Achievement] = []

        for rule in self.rules:
            if profile.has_achievement(rule.achievement.id):
                continue
            if not rule.predicate(session, profile):
                continue
            try:
                achievement = grant(profile, rule.achievement, self._clock())
            except AlreadyUnlockedError:
                continue
            unlocked.append(achievement)

            logger.info(
                f"Achievement unlocked for {profile.id}: {achievement.id} (+{achievement.points} XP)",
                extra={
                    'event_type': 'achievement_unlocked',
                    'profile_id': profile.id,
                    'achievement_id': achievement.id,
                    'timestamp': time.time()
                }
            )
            self._announce(profile, achievement)

        return unlocked

    def _announce(self, profile: PlayerProfile, achievement: Achievement) -> None:
        notification = None
        if self.notifications is not None:
            notification = self.notifications.push(
                f"Achievement unlocked: {achievement.name}",
                f"{achievement.description} (+{achievement.points} XP)"
            )
        if self.emitter is not None:
            self.emitter.emit(
                ACHIEVEMENT_UNLOCKED,
                AchievementUnlocked(profile_id=profile.id, achievement=achievement, notification=notification)
            )

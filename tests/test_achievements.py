"""
Unit tests for the achievement catalog and evaluator.
"""
import unittest

from hero_trivia.achievements import CATALOG, AchievementEvaluator, get_catalog, grant
from hero_trivia.events import ACHIEVEMENT_UNLOCKED, EventEmitter, NotificationCenter
from hero_trivia.exceptions import AlreadyUnlockedError
from hero_trivia.models import GameMode, PlayerStatistics
from tests.test_fixtures import FakeClock, TestFixtures


def _ids(achievements):
    return {a.id for a in achievements}


class TestCatalog(unittest.TestCase):
    """Test cases for the static catalog."""

    def test_catalog_ids_are_unique(self):
        ids = [rule.achievement.id for rule in CATALOG]
        self.assertEqual(len(ids), len(set(ids)))

    def test_get_catalog_returns_unlocked_copies(self):
        catalog = get_catalog()
        self.assertEqual(len(catalog), len(CATALOG))
        self.assertTrue(all(a.unlocked_at is None for a in catalog))
        catalog[0].name = "changed"
        self.assertNotEqual(CATALOG[0].achievement.name, "changed")


class TestGrant(unittest.TestCase):
    """Test cases for granting a single achievement."""

    def test_grant_awards_experience_and_level(self):
        profile = TestFixtures.create_profile(experience=950)
        achievement = next(a for a in get_catalog() if a.id == "first_quiz")
        unlocked = grant(profile, achievement, now=123.0)

        self.assertEqual(unlocked.unlocked_at, 123.0)
        self.assertEqual(profile.experience, 1000)
        self.assertEqual(profile.level, 2)
        self.assertTrue(profile.has_achievement("first_quiz"))

    def test_grant_twice_raises(self):
        profile = TestFixtures.create_profile()
        achievement = get_catalog()[0]
        grant(profile, achievement)
        with self.assertRaises(AlreadyUnlockedError):
            grant(profile, achievement)
        self.assertEqual(len(profile.achievements), 1)
        self.assertEqual(profile.experience, achievement.points)


class TestAchievementEvaluator(unittest.TestCase):
    """Test cases for evaluating the catalog against a finished session."""

    def setUp(self):
        self.emitter = EventEmitter()
        self.unlocked_events = []
        self.emitter.on(ACHIEVEMENT_UNLOCKED, self.unlocked_events.append)
        self.clock = FakeClock()
        self.notifications = NotificationCenter(duration_sec=5.0, clock=self.clock)
        self.evaluator = AchievementEvaluator(self.emitter, self.notifications, clock=self.clock)

    def played_profile(self, answered: int, games: int = 1, total_score: int = 0):
        return TestFixtures.create_profile(
            games_played=games,
            total_score=total_score,
            statistics=PlayerStatistics(total_questions_answered=answered)
        )

    def test_first_game_unlocks_starters(self):
        session = TestFixtures.create_finished_session([True, False, True])
        profile = self.played_profile(answered=3)
        unlocked = self.evaluator.check(session, profile)
        self.assertEqual(_ids(unlocked), {"first_question", "first_quiz"})

    def test_check_is_idempotent(self):
        session = TestFixtures.create_finished_session([True] * 5)
        profile = self.played_profile(answered=5)

        first = self.evaluator.check(session, profile)
        experience = profile.experience
        second = self.evaluator.check(session, profile)

        self.assertTrue(first)
        self.assertEqual(second, [])
        self.assertEqual(profile.experience, experience)
        self.assertEqual(len(profile.achievements), len(first))
        self.assertEqual(len(self.unlocked_events), len(first))

    def test_perfect_score_requires_full_non_early_session(self):
        profile = self.played_profile(answered=4)
        early = TestFixtures.create_finished_session([True] * 4, ended_early=True)
        self.assertNotIn("perfect_score", _ids(self.evaluator.check(early, profile)))

        missed = TestFixtures.create_finished_session([True, True, False, True])
        self.assertNotIn("perfect_score", _ids(self.evaluator.check(missed, profile)))

        perfect = TestFixtures.create_finished_session([True] * 4)
        self.assertIn("perfect_score", _ids(self.evaluator.check(perfect, profile)))

    def test_streak_achievements(self):
        profile = self.played_profile(answered=16)
        session = TestFixtures.create_finished_session([True] * 15 + [False], mode=GameMode.SURVIVAL)
        unlocked = _ids(self.evaluator.check(session, profile))
        self.assertTrue({"streak_5", "streak_10", "streak_master"} <= unlocked)

    def test_four_streak_unlocks_no_streak_achievement(self):
        profile = self.played_profile(answered=5)
        session = TestFixtures.create_finished_session([True] * 4 + [False])
        self.assertNotIn("streak_5", _ids(self.evaluator.check(session, profile)))

    def test_collector_counts_unlocks_from_same_pass(self):
        # Six rules unlock before collector is reached
        profile = self.played_profile(answered=10)
        session = TestFixtures.create_finished_session([True] * 10, response_time_ms=1500, duration_sec=300)
        unlocked = _ids(self.evaluator.check(session, profile))
        self.assertIn("speed_demon", unlocked)
        self.assertIn("collector", unlocked)

    def test_speed_demon_needs_ten_fast_answers(self):
        profile = self.played_profile(answered=9)
        session = TestFixtures.create_finished_session([True] * 9, response_time_ms=1500)
        self.assertNotIn("speed_demon", _ids(self.evaluator.check(session, profile)))

    def test_time_lord_needs_full_quiz_under_a_minute(self):
        profile = self.played_profile(answered=8)
        slow = TestFixtures.create_finished_session([True, False] * 4, duration_sec=61)
        self.assertNotIn("time_lord", _ids(self.evaluator.check(slow, profile)))

        fast = TestFixtures.create_finished_session([True, False] * 4, duration_sec=45)
        self.assertIn("time_lord", _ids(self.evaluator.check(fast, profile)))

    def test_time_lord_not_available_in_unbounded_modes(self):
        profile = self.played_profile(answered=3)
        session = TestFixtures.create_finished_session([True, True, False], mode=GameMode.SURVIVAL, duration_sec=20)
        self.assertNotIn("time_lord", _ids(self.evaluator.check(session, profile)))

    def test_lifetime_achievements(self):
        profile = self.played_profile(answered=100, games=10, total_score=10000)
        session = TestFixtures.create_finished_session([False])
        unlocked = _ids(self.evaluator.check(session, profile))
        self.assertIn("quiz_veteran", unlocked)
        self.assertIn("marvel_master", unlocked)
        self.assertEqual(profile.level, 1 + profile.experience // 1000)

    def test_unlock_emits_event_with_notification(self):
        session = TestFixtures.create_finished_session([False])
        profile = self.played_profile(answered=1)
        self.evaluator.check(session, profile)

        event = self.unlocked_events[0]
        self.assertEqual(event.profile_id, profile.id)
        self.assertIsNotNone(event.notification)
        self.assertIn(event.achievement.name, event.notification.title)
        self.assertEqual(len(self.notifications.active()), len(self.unlocked_events))

        self.clock.advance(5)
        self.assertEqual(self.notifications.active(), [])

    def test_evaluator_without_emitter(self):
        evaluator = AchievementEvaluator()
        session = TestFixtures.create_finished_session([True])
        unlocked = evaluator.check(session, self.played_profile(answered=1))
        self.assertIn("first_quiz", _ids(unlocked))


if __name__ == '__main__':
    unittest.main()

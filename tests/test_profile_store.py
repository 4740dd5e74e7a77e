"""
Unit tests for the player profile store and its storage backends.
"""
import json
import logging
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

from hero_trivia.exceptions import PersistenceError
from hero_trivia.models import Archetype, PlayerAnswer, SessionConfig, SessionStatus, SKIPPED, TIMEOUT
from hero_trivia.profile_store import (
    InMemoryProfileStorage, JsonFileProfileStorage, PlayerProfileStore,
    level_for_experience, profile_from_dict, profile_to_dict
)
from tests.test_fixtures import FakeClock, TestFixtures


def _answer(correct=True, chosen=0, response_time_ms=1000, archetype=Archetype.IDENTITY):
    return PlayerAnswer("q", chosen, correct, response_time_ms, 10 if correct else 0, archetype)


class TestLevels(unittest.TestCase):

    def test_level_for_experience(self):
        self.assertEqual(level_for_experience(0), 1)
        self.assertEqual(level_for_experience(999), 1)
        self.assertEqual(level_for_experience(1000), 2)
        self.assertEqual(level_for_experience(2500), 3)


class TestRecordAnswer(unittest.TestCase):
    """Test cases for per-answer statistics."""

    def setUp(self):
        self.store = PlayerProfileStore(InMemoryProfileStorage(), "player-1", "Tester")
        self.stats = self.store.profile.statistics

    def test_running_average_response_time(self):
        for ms in (1000, 2000, 6000):
            self.store.record_answer(_answer(response_time_ms=ms))
        self.assertAlmostEqual(self.stats.average_response_time_ms, 3000)
        self.assertEqual(self.stats.total_questions_answered, 3)

    def test_timeouts_and_skips_counted(self):
        self.store.record_answer(_answer(False, TIMEOUT))
        self.store.record_answer(_answer(False, SKIPPED))
        self.store.record_answer(_answer(False, 2))
        self.assertEqual(self.stats.timeouts, 1)
        self.assertEqual(self.stats.skips, 1)
        self.assertEqual(self.stats.correct_answers, 0)
        self.assertEqual(self.stats.accuracy, 0.0)

    def test_favorite_category_follows_correct_answers(self):
        self.store.record_answer(_answer(archetype=Archetype.POWERS))
        self.store.record_answer(_answer(archetype=Archetype.CREATORS))
        self.store.record_answer(_answer(archetype=Archetype.CREATORS))
        self.store.record_answer(_answer(False, 1, archetype=Archetype.POWERS))
        self.assertEqual(self.stats.favorite_category, "creators")
        self.assertEqual(self.stats.category_counts, {"powers": 1, "creators": 2})

    def test_fast_answers_counted(self):
        self.store.record_answer(_answer(response_time_ms=1999))
        self.store.record_answer(_answer(response_time_ms=2000))
        self.assertEqual(self.stats.fast_answers, 1)


class TestRecordSession(unittest.TestCase):

    def test_session_aggregates(self):
        store = PlayerProfileStore(InMemoryProfileStorage(), "player-1")
        session = TestFixtures.create_finished_session([True, True, False], duration_sec=90)
        summary = Mock(duration_sec=90.0)
        store.record_session(session, summary)

        profile = store.profile
        self.assertEqual(profile.games_played, 1)
        self.assertEqual(profile.total_score, 40)
        self.assertEqual(profile.statistics.best_streak, 2)
        self.assertEqual(profile.statistics.total_time_played_sec, 90.0)

    def test_best_streak_never_decreases(self):
        store = PlayerProfileStore(InMemoryProfileStorage(), "player-1")
        store.record_session(TestFixtures.create_finished_session([True] * 6), Mock(duration_sec=1.0))
        store.record_session(TestFixtures.create_finished_session([True]), Mock(duration_sec=1.0))
        self.assertEqual(store.profile.statistics.best_streak, 6)


class TestSerialization(unittest.TestCase):

    def test_round_trip_preserves_profile(self):
        profile = TestFixtures.create_profile(level=2, experience=1500, total_score=700, games_played=3)
        profile.statistics.category_counts = {"powers": 2}
        profile.settings = {"sound": False}
        restored = profile_from_dict(json.loads(json.dumps(profile_to_dict(profile))))
        self.assertEqual(restored, profile)

    def test_unknown_keys_ignored_and_level_recomputed(self):
        record = {
            "id": "p",
            "experience": 2100,
            "level": 99,
            "legacy_field": True,
            "statistics": {"correct_answers": 4, "removed_stat": 1},
            "achievements": [{"id": "first_quiz", "name": "Hero Initiate", "description": "",
                              "rarity": "common", "points": 50, "criterion": "", "icon": "x"}]
        }
        profile = profile_from_dict(record)
        self.assertEqual(profile.level, 3)
        self.assertEqual(profile.statistics.correct_answers, 4)
        self.assertEqual(profile.display_name, "p")
        self.assertTrue(profile.has_achievement("first_quiz"))


class TestJsonFileProfileStorage(unittest.TestCase):
    """Test cases for the file-backed storage."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.storage = JsonFileProfileStorage(os.path.join(self.temp_dir, "profiles"))

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_profile_returns_none(self):
        self.assertIsNone(self.storage.get("nobody"))

    def test_set_get_clear(self):
        self.storage.set("42", {"id": "42", "experience": 10})
        self.assertEqual(self.storage.get("42"), {"id": "42", "experience": 10})
        self.storage.clear("42")
        self.assertIsNone(self.storage.get("42"))

    def test_write_leaves_no_temporary_files(self):
        self.storage.set("42", {"id": "42"})
        self.storage.set("42", {"id": "42", "games_played": 1})
        self.assertEqual([p.name for p in self.storage.directory.iterdir()], ["42.json"])

    def test_unserialisable_record_raises_and_keeps_old_file(self):
        self.storage.set("42", {"id": "42"})
        with self.assertRaises(PersistenceError):
            self.storage.set("42", {"id": "42", "bad": object()})
        self.assertEqual(self.storage.get("42"), {"id": "42"})
        self.assertEqual(len(list(self.storage.directory.iterdir())), 1)

    def test_corrupt_file_raises(self):
        self.storage.directory.mkdir(parents=True)
        (self.storage.directory / "42.json").write_text("{not json", encoding='utf-8')
        with self.assertRaises(PersistenceError):
            self.storage.get("42")

    def test_profile_ids_are_sanitised(self):
        self.storage.set("../escape", {"id": "../escape"})
        self.assertFalse((Path(self.temp_dir) / "escape.json").exists())
        self.assertEqual(self.storage.get("../escape"), {"id": "../escape"})


class TestPlayerProfileStore(unittest.TestCase):
    """Test cases for load/save behaviour."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.storage = JsonFileProfileStorage(self.temp_dir)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_reload(self):
        store = PlayerProfileStore(self.storage, "player-1", "Tester")
        store.load()
        store.record_answer(_answer())
        store.update_settings(difficulty="hard")
        self.assertTrue(store.save())

        reloaded = PlayerProfileStore(self.storage, "player-1").load()
        self.assertEqual(reloaded.display_name, "Tester")
        self.assertEqual(reloaded.statistics.correct_answers, 1)
        self.assertEqual(reloaded.settings, {"difficulty": "hard"})

    def test_corrupt_record_starts_fresh_profile(self):
        (Path(self.temp_dir) / "player-1.json").write_text("[]garbage", encoding='utf-8')
        store = PlayerProfileStore(self.storage, "player-1", "Tester")
        with self.assertLogs('hero_trivia.profile_store', level='ERROR'):
            profile = store.load()
        self.assertEqual(profile.games_played, 0)
        self.assertIsNotNone(store.last_persistence_error)

    def test_save_failure_returns_false_and_logs(self):
        storage = Mock()
        storage.set.side_effect = PersistenceError("disk full")
        store = PlayerProfileStore(storage, "player-1")
        with self.assertLogs('hero_trivia.profile_store', level='ERROR') as logs:
            self.assertFalse(store.save())
        self.assertIn("disk full", logs.output[0])
        self.assertEqual(store.last_persistence_error, "disk full")

    def test_reset_clears_storage(self):
        store = PlayerProfileStore(self.storage, "player-1")
        store.record_answer(_answer())
        store.save()
        profile = store.reset()
        self.assertEqual(profile.statistics.total_questions_answered, 0)
        self.assertIsNone(self.storage.get("player-1"))

    def test_failing_storage_does_not_interrupt_game(self):
        storage = Mock()
        storage.set.side_effect = PersistenceError("read-only")
        store = PlayerProfileStore(storage, "player-1")
        controller = TestFixtures.create_controller(FakeClock(), profile_store=store)

        controller.start("story", "easy", SessionConfig(question_count=1))
        logging.disable(logging.CRITICAL)
        try:
            controller.submit_answer(controller.current_question.correct_index, 1000)
        finally:
            logging.disable(logging.NOTSET)

        self.assertEqual(controller.status, SessionStatus.COMPLETED)
        self.assertEqual(store.profile.games_played, 1)
        self.assertEqual(store.last_persistence_error, "read-only")


if __name__ == '__main__':
    unittest.main()

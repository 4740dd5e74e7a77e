"""
Integration tests for the Discord front end with mocked Discord objects.
"""
import asyncio
import logging
import shutil
import tempfile
import unittest
from pathlib import Path

import discord

from hero_trivia.bot import (
    OPTION_LABELS, QuizBot, build_question_embed, build_result_embed, build_status_embed
)
from hero_trivia.events import AnswerResult, QuestionChanged
from hero_trivia.models import Difficulty, SessionStatus
from tests.test_fixtures import MockDiscordObjects, TestFixtures


class TestBotCommands(unittest.IsolatedAsyncioTestCase):
    """Slash command handlers driving real controllers."""

    async def asyncSetUp(self):
        self.temp_dir = tempfile.mkdtemp()
        logging.disable(logging.CRITICAL)
        self.bot = QuizBot({'quiz': {'profile_directory': self.temp_dir, 'advance_delay_sec': 0}})
        await self.bot.setup_hook()
        self.channel = MockDiscordObjects.create_mock_channel(12345)

    async def asyncTearDown(self):
        for game in self.bot.games.values():
            game.cancel_advance()
            if game.controller.status in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
                game.controller.abandon()
        for task in list(self.bot._background_tasks):
            task.cancel()
        await asyncio.sleep(0)
        logging.disable(logging.NOTSET)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def interaction(self, user_id: int = 67890):
        return MockDiscordObjects.create_mock_interaction(12345, user_id, self.channel)

    def sent_embeds(self):
        return [call.kwargs['embed'] for call in self.channel.send.call_args_list if 'embed' in call.kwargs]

    def response_embed(self, interaction) -> discord.Embed:
        return interaction.response.send_message.call_args.kwargs['embed']

    async def start_game(self, mode: str = "story", difficulty: str = "easy"):
        await self.bot.handle_play(self.interaction(), mode, difficulty)
        await asyncio.sleep(0.05)
        return self.bot.get_game(12345)

    async def test_setup_applies_configuration(self):
        settings = self.bot.config_manager.get_settings()
        self.assertEqual(settings.profile_directory, self.temp_dir)
        self.assertEqual(settings.advance_delay_sec, 0)
        self.assertGreaterEqual(self.bot.data_manager.get_subject_count(), 4)

    async def test_help_lists_commands(self):
        interaction = self.interaction()
        await self.bot.handle_help(interaction)
        embed = self.response_embed(interaction)
        self.assertIn("Commands", embed.title)

    async def test_play_starts_game_and_posts_question(self):
        game = await self.start_game()
        self.assertIsNotNone(game)
        self.assertEqual(game.controller.status, SessionStatus.ACTIVE)
        self.assertTrue(game.controller.question_timer.is_running)
        self.assertTrue(any("Question 1/8" in e.title for e in self.sent_embeds()))
        self.assertIs(game.question_message, self.channel.send.return_value)

    async def test_play_while_running_is_rejected(self):
        game = await self.start_game()
        interaction = self.interaction()
        await self.bot.handle_play(interaction, "blitz", "hard")
        self.assertIn("Game In Progress", self.response_embed(interaction).title)
        self.assertIs(self.bot.get_game(12345), game)

    async def test_invalid_mode_reports_error(self):
        interaction = self.interaction()
        await self.bot.handle_play(interaction, "arcade", "easy")
        self.assertIn("Invalid Options", self.response_embed(interaction).title)
        self.assertIsNone(self.bot.get_game(12345))

    async def test_answer_records_and_auto_advances(self):
        game = await self.start_game()
        question = game.controller.current_question

        interaction = self.interaction()
        await self.bot.handle_answer(interaction, OPTION_LABELS[question.correct_index].lower())
        session = game.controller.session
        self.assertEqual(len(session.answers), 1)
        self.assertTrue(session.answers[0].is_correct)

        await asyncio.sleep(0.05)
        self.assertEqual(session.current_index, 1)
        self.assertTrue(any(e.title.startswith("✅ Correct!") for e in self.sent_embeds()))

    async def test_invalid_option_rejected(self):
        game = await self.start_game()
        interaction = self.interaction()
        await self.bot.handle_answer(interaction, "E")
        self.assertIn("Invalid Option", self.response_embed(interaction).title)
        self.assertEqual(game.controller.session.answers, [])

    async def test_other_user_cannot_answer(self):
        game = await self.start_game()
        interaction = self.interaction(user_id=1)
        await self.bot.handle_answer(interaction, "A")
        self.assertIn("Warning", self.response_embed(interaction).title)
        self.assertEqual(game.controller.session.answers, [])

    async def test_answer_without_game(self):
        interaction = self.interaction()
        await self.bot.handle_answer(interaction, "A")
        self.assertIn("No Active Game", self.response_embed(interaction).title)

    async def test_pause_blocks_answers_until_resume(self):
        game = await self.start_game()
        await self.bot.handle_pause(self.interaction())
        self.assertEqual(game.controller.status, SessionStatus.PAUSED)
        self.assertFalse(game.controller.question_timer.has_pending_tick)

        interaction = self.interaction()
        await self.bot.handle_answer(interaction, "A")
        self.assertEqual(game.controller.session.answers, [])
        interaction.response.send_message.assert_called_once()
        self.assertIn("Warning", self.response_embed(interaction).title)

        await self.bot.handle_resume(self.interaction())
        self.assertEqual(game.controller.status, SessionStatus.ACTIVE)

    async def test_skip_moves_to_next_question(self):
        game = await self.start_game()
        await self.bot.handle_skip(self.interaction())
        self.assertEqual(game.controller.session.current_index, 1)
        self.assertTrue(game.controller.session.answers[0].skipped)

    async def test_stop_finishes_and_saves_profile(self):
        game = await self.start_game()
        await self.bot.handle_stop(self.interaction())
        await asyncio.sleep(0.05)

        self.assertEqual(game.controller.status, SessionStatus.COMPLETED)
        self.assertTrue(game.controller.session.ended_early)
        self.assertEqual(game.profile_store.profile.games_played, 1)
        self.assertTrue((Path(self.temp_dir) / "67890.json").exists())
        self.assertTrue(any("Ended Early" in e.title for e in self.sent_embeds()))

    async def test_status_reports_progress(self):
        interaction = self.interaction()
        await self.bot.handle_status(interaction)
        self.assertIn("No Game", self.response_embed(interaction).title)

        await self.start_game()
        interaction = self.interaction()
        await self.bot.handle_status(interaction)
        self.assertIn("Story Quiz Status", self.response_embed(interaction).title)

    async def test_profile_and_achievements_are_ephemeral(self):
        interaction = self.interaction()
        await self.bot.handle_profile(interaction)
        self.assertTrue(interaction.response.send_message.call_args.kwargs['ephemeral'])
        self.assertIn("User67890", self.response_embed(interaction).title)

        interaction = self.interaction()
        await self.bot.handle_achievements(interaction)
        embed = self.response_embed(interaction)
        self.assertTrue(embed.footer.text.startswith("0/"))

    async def test_profile_store_is_cached_per_user(self):
        user = self.interaction().user
        self.assertIs(self.bot.get_profile_store(user), self.bot.get_profile_store(user))


class TestEmbedBuilders(unittest.TestCase):
    """Embed rendering of engine events."""

    def setUp(self):
        self.question = TestFixtures.create_generator().generate(Difficulty.MEDIUM)

    def test_question_embed(self):
        payload = QuestionChanged("s", self.question, 2, 8, 30)
        embed = build_question_embed(payload, lives=2)
        self.assertEqual(embed.title, "❓ Question 3/8")
        self.assertIn("**A.**", embed.fields[0].value)
        self.assertIn("30s", embed.footer.text)

    def test_unbounded_question_embed(self):
        embed = build_question_embed(QuestionChanged("s", self.question, 4, None, None), lives=0)
        self.assertEqual(embed.title, "❓ Question 5")
        self.assertNotIn("⏱️", embed.footer.text)

    def test_result_embeds(self):
        base = dict(session_id="s", question_id="q", points_earned=0, explanation="Because.",
                    correct_index=1, score=10, streak=0, lives=2)
        timed_out = build_result_embed(AnswerResult(correct=False, timed_out=True, **base), "Thor")
        self.assertIn("Time's up", timed_out.title)
        self.assertIn("**B.** Thor", timed_out.fields[0].value)

        powered = build_result_embed(
            AnswerResult(correct=True, power_up_activated=True, **dict(base, points_earned=80)), "Thor"
        )
        self.assertEqual(powered.title, "✅ Correct! +80")
        self.assertTrue(any("Power-up" in f.name for f in powered.fields))

    def test_status_embed_hides_timer_when_completed(self):
        progress = {
            'status': 'completed', 'mode': 'blitz', 'total_questions': None, 'current_question': 7,
            'score': 100, 'streak': 0, 'best_streak': 4, 'lives': 0, 'time_remaining': 0
        }
        embed = build_status_embed(progress)
        self.assertEqual(len(embed.fields), 1)
        self.assertIn("Question: 7", embed.fields[0].value)


if __name__ == '__main__':
    unittest.main()

"""
Unit tests for the QuizTimer countdown and its lifecycle logging.
"""
import asyncio
import unittest
from unittest.mock import Mock

from hero_trivia.quiz_timer import QuizTimer
from tests.test_fixtures import FakeClock


class TestQuizTimerManual(unittest.TestCase):
    """Timer driven by hand with a fake clock."""

    def setUp(self):
        self.clock = FakeClock()
        self.timer = QuizTimer("test", tick_seconds=1.0, clock=self.clock, auto_schedule=False)
        self.on_expire = Mock()
        self.on_tick = Mock()

    def advance_and_tick(self, seconds: float = 1.0):
        self.clock.advance(seconds)
        self.timer.tick()

    def test_fires_exactly_once(self):
        self.timer.arm(3, self.on_expire, self.on_tick)
        self.advance_and_tick()
        self.advance_and_tick()
        self.on_expire.assert_not_called()
        self.advance_and_tick()
        self.on_expire.assert_called_once()

        self.advance_and_tick()
        self.advance_and_tick()
        self.on_expire.assert_called_once()
        self.assertTrue(self.timer.has_fired)
        self.assertFalse(self.timer.is_running)

    def test_tick_reports_whole_seconds_remaining(self):
        self.timer.arm(3, self.on_expire, self.on_tick)
        self.advance_and_tick()
        self.advance_and_tick(0.5)
        self.assertEqual([c.args[0] for c in self.on_tick.call_args_list], [2, 2])

    def test_pause_freezes_and_resume_continues_from_remaining(self):
        self.timer.arm(10, self.on_expire, self.on_tick)
        self.advance_and_tick(4)
        self.timer.pause()
        self.assertTrue(self.timer.is_paused)

        # Time passing while paused is not counted, and ticks are ignored
        self.advance_and_tick(100)
        self.on_expire.assert_not_called()
        self.assertEqual(self.timer.remaining, 6)

        self.timer.resume()
        self.assertEqual(self.timer.remaining, 6)
        self.advance_and_tick(5)
        self.on_expire.assert_not_called()
        self.advance_and_tick(1)
        self.on_expire.assert_called_once()

    def test_late_tick_does_not_stretch_countdown(self):
        """Remaining time follows the deadline, not the number of ticks."""
        self.timer.arm(10, self.on_expire)
        self.advance_and_tick(7)
        self.assertAlmostEqual(self.timer.remaining, 3)
        self.advance_and_tick(3)
        self.on_expire.assert_called_once()

    def test_naive_tick_counting_without_drift_correction(self):
        timer = QuizTimer("naive", clock=self.clock, auto_schedule=False, drift_correction=False)
        timer.arm(10, self.on_expire)
        self.clock.advance(7)
        timer.tick()
        self.assertEqual(timer.remaining, 9)

    def test_cancel_prevents_expiry(self):
        self.timer.arm(2, self.on_expire)
        self.timer.cancel()
        self.advance_and_tick(5)
        self.on_expire.assert_not_called()
        self.assertFalse(self.timer.is_running)

    def test_rearm_resets_fired_state(self):
        self.timer.arm(1, self.on_expire)
        self.advance_and_tick()
        self.timer.arm(1, self.on_expire)
        self.assertFalse(self.timer.has_fired)
        self.advance_and_tick()
        self.assertEqual(self.on_expire.call_count, 2)

    def test_tick_before_arm_is_noop(self):
        self.timer.tick()
        self.assertFalse(self.timer.has_fired)

    def test_expiry_callback_error_is_logged_not_raised(self):
        on_expire = Mock(side_effect=RuntimeError("boom"))
        self.timer.arm(1, on_expire)
        self.clock.advance(1)
        with self.assertLogs('hero_trivia.quiz_timer', level='ERROR') as logs:
            self.timer.tick()
        self.assertIn("expiry_callback_error", logs.output[0])
        self.assertIn("boom", logs.output[0])
        self.assertTrue(self.timer.has_fired)
        self.assertFalse(self.timer.is_running)

        self.clock.advance(1)
        self.timer.tick()
        on_expire.assert_called_once()

    def test_lifecycle_is_logged(self):
        with self.assertLogs('hero_trivia.quiz_timer', level='INFO') as logs:
            self.timer.arm(1, self.on_expire)
            self.timer.pause()
            self.timer.resume()
            self.timer.cancel()
        output = "\n".join(logs.output)
        self.assertIn("ARMED", output)
        self.assertIn("running -> paused", output)
        self.assertIn("paused -> running", output)
        self.assertIn("cancelled", output)


class TestQuizTimerEventLoop(unittest.IsolatedAsyncioTestCase):
    """Timer scheduling itself on a running event loop."""

    async def test_fires_on_running_loop(self):
        on_expire = Mock()
        timer = QuizTimer("loop", tick_seconds=0.01)
        timer.arm(0.05, on_expire)
        self.assertTrue(timer.has_pending_tick)

        await asyncio.sleep(0.3)
        on_expire.assert_called_once()
        self.assertFalse(timer.has_pending_tick)

    async def test_pause_cancels_pending_tick(self):
        on_expire = Mock()
        timer = QuizTimer("loop", tick_seconds=0.01)
        timer.arm(0.1, on_expire)
        timer.pause()
        self.assertFalse(timer.has_pending_tick)

        await asyncio.sleep(0.25)
        on_expire.assert_not_called()

        timer.resume()
        self.assertTrue(timer.has_pending_tick)
        await asyncio.sleep(0.3)
        on_expire.assert_called_once()

    async def test_cancel_leaves_nothing_scheduled(self):
        on_expire = Mock()
        timer = QuizTimer("loop", tick_seconds=0.01)
        timer.arm(0.05, on_expire)
        timer.cancel()
        await asyncio.sleep(0.15)
        on_expire.assert_not_called()
        self.assertFalse(timer.has_pending_tick)


if __name__ == '__main__':
    unittest.main()

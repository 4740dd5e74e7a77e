"""
Countdown timer for questions and blitz sessions.

The timer runs cooperatively on the asyncio event loop: each tick is a
``loop.call_later`` handle, so pausing simply cancels the pending handle.
Remaining time is measured against a monotonic deadline, so a tick that
fires late (loop stalled, process suspended) does not stretch the countdown.
Without a running loop the timer is driven manually through ``tick()``.
"""
import asyncio
import logging
import math
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_armed(timer_name: str, duration: float) -> None:
        logger.info(
            f"Timer lifecycle: ARMED - {timer_name}, Duration {duration}s",
            extra={
                'event_type': 'timer_armed',
                'timer_name': timer_name,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(timer_name: str, remaining_time: float, total_duration: float) -> None:
        """Log timer update events (throttled to avoid spam)."""
        whole = math.ceil(remaining_time)
        if whole % 10 == 0 or whole <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - {timer_name}, Remaining {remaining_time:.1f}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'timer_name': timer_name,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(timer_name: str, completion_type: str, total_duration: float) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - {timer_name}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'timer_name': timer_name,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(timer_name: str, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - {timer_name}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'timer_name': timer_name,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(timer_name: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - {timer_name}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'timer_name': timer_name,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """Single-threaded cooperative countdown timer."""

    DEFAULT_TICK_SECONDS = 1.0

    def __init__(
        self,
        name: str = "question",
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        auto_schedule: bool = True,
        drift_correction: bool = True
    ):
        """
        Initialize the timer.

        Args:
            name: Label used in lifecycle logs
            tick_seconds: Tick resolution in seconds
            clock: Monotonic clock, injectable for tests
            auto_schedule: Schedule ticks on the running event loop when one exists
            drift_correction: Derive remaining time from a deadline instead of counting ticks
        """
        self.name = name
        self.tick_seconds = tick_seconds
        self._clock = clock
        self._auto_schedule = auto_schedule
        self._drift_correction = drift_correction

        self._handle: Optional[asyncio.TimerHandle] = None
        self._on_expire: Optional[Callable[[], Any]] = None
        self._on_tick: Optional[Callable[[int], Any]] = None
        self._duration = 0.0
        self._remaining = 0.0
        self._deadline = 0.0
        self._running = False
        self._paused = False
        self._fired = False

    def arm(
        self,
        duration: float,
        on_expire: Callable[[], Any],
        on_tick: Optional[Callable[[int], Any]] = None
    ) -> None:
        """
        Start a fresh countdown, replacing any countdown in progress.

        Args:
            duration: Countdown length in seconds
            on_expire: Called exactly once when the countdown reaches zero
            on_tick: Called after each tick with the whole seconds remaining
        """
        self._cancel_handle()
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._duration = float(duration)
        self._remaining = float(duration)
        self._deadline = self._clock() + self._duration
        self._running = True
        self._paused = False
        self._fired = False

        TimerLifecycleLogger.log_timer_armed(self.name, duration)
        self._schedule()

    def tick(self) -> None:
        """
        Advance the countdown by one tick.

        No-op when the timer is not running, is paused, or has already fired.
        """
        self._handle = None
        if not self._running or self._paused or self._fired:
            return

        if self._drift_correction:
            self._remaining = max(0.0, self._deadline - self._clock())
        else:
            self._remaining = max(0.0, self._remaining - self.tick_seconds)

        TimerLifecycleLogger.log_timer_update(self.name, self._remaining, self._duration)

        if self._remaining <= 0:
            self._fire()
            return

        if self._on_tick is not None:
            self._on_tick(math.ceil(self._remaining))
        self._schedule()

    def pause(self) -> None:
        """Freeze the countdown and cancel the pending tick."""
        if not self._running or self._paused:
            return
        if self._drift_correction:
            self._remaining = max(0.0, self._deadline - self._clock())
        self._cancel_handle()
        self._paused = True
        TimerLifecycleLogger.log_timer_state_transition(self.name, "running", "paused", "pause requested")

    def resume(self) -> None:
        """Continue the countdown from the remaining time, not the original duration."""
        if not self._running or not self._paused:
            return
        self._paused = False
        self._deadline = self._clock() + self._remaining
        TimerLifecycleLogger.log_timer_state_transition(self.name, "paused", "running", "resume requested")
        self._schedule()

    def cancel(self) -> None:
        """Stop the countdown without firing."""
        was_running = self._running
        self._cancel_handle()
        self._running = False
        self._paused = False
        if was_running and not self._fired:
            TimerLifecycleLogger.log_timer_completion(self.name, "cancelled", self._duration)

    @property
    def remaining(self) -> float:
        if self._running and not self._paused and self._drift_correction:
            return max(0.0, self._deadline - self._clock())
        return self._remaining

    @property
    def elapsed(self) -> float:
        return max(0.0, self._duration - self.remaining)

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def has_fired(self) -> bool:
        return self._fired

    @property
    def has_pending_tick(self) -> bool:
        return self._handle is not None

    def _fire(self) -> None:
        """Mark the timer expired and run the expiry callback once; callback errors are logged, not raised."""
        self._fired = True
        self._running = False
        TimerLifecycleLogger.log_timer_completion(self.name, "natural_expiry", self._duration)
        if self._on_expire is None:
            return
        try:
            self._on_expire()
        except Exception as e:
            # Ticks run from loop callbacks, so nothing above us could handle this
            TimerLifecycleLogger.log_timer_error(self.name, "expiry_callback_error", str(e), "tick")

    def _schedule(self) -> None:
        if not self._auto_schedule:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._drift_correction:
            delay = min(self.tick_seconds, max(0.0, self._deadline - self._clock()))
        else:
            delay = self.tick_seconds
        self._handle = loop.call_later(delay, self.tick)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

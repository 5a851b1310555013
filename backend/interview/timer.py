"""
Per-question countdown timer.

The timer keeps its bookkeeping on a monotonic clock and polls itself
through a cancellable scheduler. Expiry is reported once per arming.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from utils.config import config

logger = logging.getLogger(__name__)


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledHandle: ...


class ThreadingScheduler:
    """Runs each callback on a daemon `threading.Timer`."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> threading.Timer:
        handle = threading.Timer(max(delay_s, 0.0), callback)
        handle.daemon = True
        handle.start()
        return handle


@dataclass
class TimerSnapshot:
    """Point-in-time view of the countdown."""
    question_id: Optional[str]
    duration_ms: int
    remaining_ms: int
    paused: bool
    running: bool
    expired: bool


class TimerController:
    """
    Countdown for the question currently being answered.

    While running, a poll recomputes `remaining = max(duration - elapsed, 0)`
    every `poll_interval_ms` and on every observation. The first poll that
    sees zero remaining latches the timer and calls `on_expired(question_id)`.
    Starting, pausing or clearing cancels the pending poll.
    """

    def __init__(
        self,
        on_expired: Callable[[str], None],
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval_ms: Optional[int] = None,
    ):
        self._on_expired = on_expired
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._poll_interval_s = (poll_interval_ms or config.interview.timer_poll_interval_ms) / 1000

        self._lock = threading.RLock()
        self._handle: Optional[ScheduledHandle] = None
        self._generation = 0

        self._question_id: Optional[str] = None
        self._started_at: Optional[float] = None
        self._duration_ms = 0
        self._paused = False
        self._remaining_on_pause: Optional[int] = None
        self._expired = False

    # ========================================
    # Control
    # ========================================

    def start(self, question_id: str, duration_ms: int, elapsed_ms: int = 0) -> None:
        """
        Arm the countdown for a question, replacing any previous one.

        Args:
            question_id: The question being timed
            duration_ms: Full duration of this countdown
            elapsed_ms: Time already used, when re-arming a restored timer
        """
        with self._lock:
            self._cancel_pending()
            self._generation += 1
            self._question_id = question_id
            self._duration_ms = max(int(duration_ms), 0)
            self._started_at = self._clock() - max(elapsed_ms, 0) / 1000
            self._paused = False
            self._remaining_on_pause = None
            self._expired = False
            # First poll always goes through the scheduler, never the caller's stack
            self._schedule_next(self._compute_remaining())
            logger.debug(f"Timer armed for {question_id}: {self._duration_ms}ms")

    def pause(self) -> int:
        """
        Freeze the countdown.

        Returns:
            Milliseconds remaining at the moment of pausing
        """
        with self._lock:
            self._cancel_pending()
            if self._paused:
                return self._remaining_on_pause or 0
            remaining = self._compute_remaining()
            self._generation += 1
            self._started_at = None
            self._paused = True
            self._remaining_on_pause = remaining
            return remaining

    def clear(self) -> None:
        with self._lock:
            self._cancel_pending()
            self._generation += 1
            self._question_id = None
            self._started_at = None
            self._duration_ms = 0
            self._paused = False
            self._remaining_on_pause = None
            self._expired = False

    # ========================================
    # Observation
    # ========================================

    def remaining_ms(self) -> int:
        """Remaining time; polls first so an overdue expiry fires now."""
        self.poll()
        with self._lock:
            if self._paused:
                return self._remaining_on_pause or 0
            return self._compute_remaining()

    def elapsed_ms(self, question_id: Optional[str] = None) -> Optional[int]:
        """
        Time used on the running countdown.

        Returns:
            Elapsed milliseconds, or None if no countdown is running for
            `question_id` (any question when omitted)
        """
        with self._lock:
            if self._started_at is None or self._paused:
                return None
            if question_id is not None and question_id != self._question_id:
                return None
            return max(int((self._clock() - self._started_at) * 1000), 0)

    def snapshot(self) -> TimerSnapshot:
        remaining = self.remaining_ms()
        with self._lock:
            return TimerSnapshot(
                question_id=self._question_id,
                duration_ms=self._duration_ms,
                remaining_ms=remaining,
                paused=self._paused,
                running=self._is_running(),
                expired=self._expired,
            )

    @property
    def question_id(self) -> Optional[str]:
        return self._question_id

    # ========================================
    # Polling
    # ========================================

    def poll(self) -> None:
        """Recompute remaining time; fire expiry once, else re-arm the next poll."""
        fire_for: Optional[str] = None
        with self._lock:
            if not self._is_running():
                return
            remaining = self._compute_remaining()
            if remaining <= 0:
                self._expired = True
                self._cancel_pending()
                fire_for = self._question_id
            elif self._handle is None:
                self._schedule_next(remaining)

        if fire_for is not None:
            logger.info(f"Timer expired for question {fire_for}")
            self._on_expired(fire_for)

    def _scheduled_poll(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
        self.poll()

    def _schedule_next(self, remaining_ms: int) -> None:
        generation = self._generation
        delay = min(self._poll_interval_s, remaining_ms / 1000)
        self._handle = self._scheduler.call_later(delay, lambda: self._scheduled_poll(generation))

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _is_running(self) -> bool:
        return self._started_at is not None and not self._paused and not self._expired

    def _compute_remaining(self) -> int:
        if self._started_at is None:
            return 0
        elapsed = max(int((self._clock() - self._started_at) * 1000), 0)
        return max(self._duration_ms - elapsed, 0)

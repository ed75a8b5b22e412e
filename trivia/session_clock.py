"""
Per-question countdown for trivia sessions.
Handles tick scheduling, epoch guarding and timer lifecycle logging.
"""
import asyncio
import heapq
import itertools
import logging
import time
from typing import Any, Callable, List, Optional, Protocol, Tuple

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(session_id: str, duration: int, epoch: int) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Session {session_id}, Duration {duration}, Epoch {epoch}",
            extra={
                'event_type': 'timer_countdown_start',
                'session_id': session_id,
                'duration': duration,
                'epoch': epoch,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(session_id: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - Session {session_id}, Remaining {remaining_time} ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'session_id': session_id,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(session_id: str, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry, stop or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Session {session_id}, Type {completion_type}, Duration {total_duration}",
            extra={
                'event_type': 'timer_completed',
                'session_id': session_id,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_callback(session_id: str, details: str) -> None:
        """Log a timer callback that fired for a question that is no longer current."""
        logger.warning(
            f"Timer lifecycle: STALE_CALLBACK - Session {session_id}: {details}",
            extra={
                'event_type': 'timer_stale_callback',
                'session_id': session_id,
                'details': details,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_id: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_id': session_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Source of delayed callbacks. Delays are in time units."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, unit_seconds: float = 1.0):
        self._loop = loop
        self.unit_seconds = unit_seconds

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        return self.loop.call_later(delay * self.unit_seconds, callback, *args)


class ManualHandle:
    """Handle returned by ManualScheduler."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by `advance()`.

    Used for headless play and tests: nothing fires until time is advanced,
    and due callbacks run in order of their due time, then scheduling order.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[Tuple[float, int, ManualHandle, Callable[..., Any], Tuple[Any, ...]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        handle = ManualHandle()
        heapq.heappush(self._queue, (self.now + max(delay, 0), next(self._counter), handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    def advance(self, amount: float) -> int:
        """
        Move time forward and fire every callback that becomes due.

        Returns:
            Number of callbacks fired
        """
        target = self.now + amount
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, args = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            callback(*args)
            fired += 1
        self.now = target
        return fired


class SessionClock:
    """
    Countdown for the current question.

    Each start is tagged with an epoch; ticks carrying an older epoch, or
    arriving after stop/cancel, are dropped so a superseded countdown can
    never expire against a newer question.
    """

    def __init__(self, scheduler: Scheduler, duration: int = 30, tick_interval: float = 1.0,
                 session_id: Optional[str] = None):
        self.scheduler = scheduler
        self.duration = duration
        self.tick_interval = tick_interval
        self.session_id = session_id
        self._remaining = duration
        self._epoch: Optional[int] = None
        self._handle: Optional[TimerHandle] = None
        self._running = False
        self._is_cancelled = False
        self._on_tick: Optional[Callable[[int], Any]] = None
        self._on_expire: Optional[Callable[[int], Any]] = None

    def start(self, epoch: int, on_tick: Callable[[int], Any], on_expire: Callable[[int], Any]) -> None:
        """
        Reset to the full duration and begin counting down.

        Args:
            epoch: Identifier of the question attempt this countdown belongs to
            on_tick: Called with the remaining time after every decrement
            on_expire: Called with the epoch when the countdown reaches zero
        """
        self._cancel_handle()
        self._remaining = self.duration
        self._epoch = epoch
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._running = True
        self._is_cancelled = False
        TimerLifecycleLogger.log_timer_start(self.session_id, self.duration, epoch)
        self._schedule_next()

    def stop(self) -> None:
        """Freeze the countdown, keeping the remaining time for elapsed-time reads."""
        if self._running:
            TimerLifecycleLogger.log_timer_completion(self.session_id, "stopped", self.duration)
        self._running = False
        self._cancel_handle()

    def cancel(self) -> None:
        """Tear down the countdown for good."""
        self.stop()
        self._is_cancelled = True
        self._epoch = None

    @property
    def remaining_time(self) -> int:
        return self._remaining

    @property
    def elapsed(self) -> int:
        return self.duration - self._remaining

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def epoch(self) -> Optional[int]:
        return self._epoch

    def _schedule_next(self) -> None:
        self._handle = self.scheduler.call_later(self.tick_interval, self._tick, self._epoch)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self, epoch: int) -> None:
        if not self._running or self._is_cancelled or epoch != self._epoch:
            TimerLifecycleLogger.log_stale_callback(
                self.session_id, f"tick for epoch {epoch} ignored (current {self._epoch})"
            )
            return

        self._handle = None
        self._remaining = max(self._remaining - 1, 0)
        TimerLifecycleLogger.log_timer_update(self.session_id, self._remaining, self.duration)

        try:
            if self._on_tick is not None:
                self._on_tick(self._remaining)
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self.session_id, type(e).__name__, str(e), "on_tick")

        # on_tick may have stopped or restarted the clock
        if not self._running or epoch != self._epoch:
            return

        if self._remaining > 0:
            self._schedule_next()
            return

        self._running = False
        TimerLifecycleLogger.log_timer_completion(self.session_id, "natural_expiry", self.duration)
        if self._on_expire is not None:
            self._on_expire(epoch)

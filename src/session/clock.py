"""
Per-question countdown for timed sessions.

The clock is an asyncio task on the caller's event loop: it sleeps for one
tick, recomputes the remaining time from the elapsed wall-clock time, and
reports it. Remaining time is always derived from a monotonic time source,
so late or skipped ticks never make the countdown drift.

A clock ends in exactly one of two ways:
- remaining time reaches zero: ``on_expire`` fires once and the task exits
- ``cancel()``: the task exits silently

Usage:
    clock = SessionClock()
    handle = clock.start(30, on_tick=show_time_left, on_expire=force_answer)
    ...
    handle.cancel()
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Callable

from loguru import logger

TimeSource = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]
TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]

DEFAULT_TICK_INTERVAL = 0.25


class ClockHandle:
    """Handle for one running (or finished) countdown."""

    def __init__(self, limit_seconds: int, time_source: TimeSource):
        self.limit_seconds = limit_seconds
        self._time_source = time_source
        self._started_at = time_source()
        self._stopped_at: float | None = None
        self._task: asyncio.Task | None = None
        self.expired = False
        self.cancelled = False

    @property
    def active(self) -> bool:
        return self._task is not None and self._stopped_at is None

    @property
    def elapsed(self) -> float:
        end = self._stopped_at if self._stopped_at is not None else self._time_source()
        return max(end - self._started_at, 0.0)

    @property
    def remaining(self) -> int:
        """Whole seconds left, frozen once the clock stops."""
        if self.limit_seconds == 0:
            return 0
        if self.expired:
            return 0
        return max(self.limit_seconds - math.floor(self.elapsed), 0)

    def cancel(self) -> None:
        """Stop the countdown without callbacks. Idempotent."""
        if not self.active:
            return
        self._stopped_at = self._time_source()
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until the countdown task has exited."""
        if self._task is None:
            return
        await asyncio.wait({self._task})

    def _mark_expired(self) -> None:
        self._stopped_at = self._time_source()
        self.expired = True


class SessionClock:
    """
    Factory for cooperative countdowns.

    Args:
        tick_interval: Seconds between remaining-time recomputations
        time_source: Monotonic time in seconds (injectable for tests)
        sleep: Awaitable sleep used between ticks (injectable for tests)
    """

    def __init__(
        self,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        time_source: TimeSource | None = None,
        sleep: Sleeper | None = None,
    ):
        if tick_interval <= 0:
            raise ValueError(f"tick_interval must be positive, got {tick_interval}")
        self.tick_interval = tick_interval
        self._time_source = time_source or time.monotonic
        self._sleep = sleep or asyncio.sleep

    def now(self) -> float:
        return self._time_source()

    def start(
        self,
        limit_seconds: int,
        on_tick: TickCallback,
        on_expire: ExpireCallback,
    ) -> ClockHandle:
        """
        Start a countdown of ``limit_seconds``.

        A limit of 0 means unlimited time: the returned handle is inert and
        neither callback is ever invoked. Otherwise a task is scheduled on the
        running loop and this call returns immediately.
        """
        if limit_seconds < 0:
            raise ValueError(f"limit_seconds must be >= 0, got {limit_seconds}")

        handle = ClockHandle(limit_seconds, self._time_source)
        if limit_seconds == 0:
            return handle

        loop = asyncio.get_running_loop()
        handle._task = loop.create_task(self._run(handle, on_tick, on_expire))
        handle._task.add_done_callback(_log_task_failure)
        logger.debug(f"Clock started: {limit_seconds}s")
        return handle

    @staticmethod
    def cancel(handle: ClockHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    async def _run(
        self,
        handle: ClockHandle,
        on_tick: TickCallback,
        on_expire: ExpireCallback,
    ) -> None:
        while True:
            await self._sleep(self.tick_interval)
            if not handle.active:
                return

            remaining = handle.remaining
            try:
                on_tick(remaining)
            except Exception:
                # The countdown must still reach expiry
                logger.exception("Clock tick observer failed")
            # on_tick may have cancelled us
            if not handle.active:
                return

            if remaining == 0:
                handle._mark_expired()
                logger.debug("Clock expired")
                on_expire()
                return


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.opt(exception=exc).error("Session clock callback failed")

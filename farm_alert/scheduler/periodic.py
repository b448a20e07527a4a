"""PeriodicTask — a single-flight, fixed-interval async job.

State machine:  IDLE → RUNNING → IDLE
    A run requested while the previous one is still RUNNING is skipped and
    logged, never queued.  The IDLE → RUNNING transition happens
    synchronously, so two triggers in the same loop iteration cannot both
    start.

The ticker waits through an injectable ``sleep`` coroutine, so tests can
drive ticks without wall-clock delays.  Exceptions escaping a run are
logged with traceback and never stop the ticker.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class TaskState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class PeriodicTask(Generic[T]):
    """Runs *action* every *interval*, at most one run at a time.

    Args:
        name: Used in logs and status output.
        action: Coroutine function performing one run.
        interval: Delay between ticks.
        sleep: Awaitable delay, ``asyncio.sleep`` in production.
        run_on_start: Fire one run as soon as the ticker starts.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        interval: timedelta,
        sleep: Sleep = asyncio.sleep,
        run_on_start: bool = False,
    ) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        self.name = name
        self._action = action
        self._interval = interval
        self._sleep = sleep
        self._run_on_start = run_on_start

        self._state = TaskState.IDLE
        self._ticker: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

        self.runs: int = 0
        self.skipped: int = 0
        self.failures: int = 0
        self.last_result: T | None = None

    # ── State ────────────────────────────────────────────────────────────

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def is_started(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    # ── Runs ─────────────────────────────────────────────────────────────

    async def trigger(self) -> T | None:
        """Run once now and wait for it.  Returns None if skipped or failed."""
        if not self._begin():
            return None
        return await self._execute()

    def _begin(self) -> bool:
        if self._state is TaskState.RUNNING:
            self.skipped += 1
            logger.warning("%s: previous run still in progress, skipping", self.name)
            return False
        self._state = TaskState.RUNNING
        return True

    async def _execute(self) -> T | None:
        """Must only be called after a successful _begin()."""
        try:
            result = await self._action()
        except Exception:
            self.failures += 1
            logger.exception("%s: run failed", self.name)
            return None
        else:
            self.runs += 1
            self.last_result = result
            return result
        finally:
            self._state = TaskState.IDLE

    # ── Ticker ───────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.is_started:
            logger.warning("%s: already started", self.name)
            return
        self._ticker = asyncio.create_task(self._tick_loop(), name=f"{self.name}-ticker")
        logger.info("%s: started (every %s)", self.name, self._interval)

    async def stop(self, wait: bool = True) -> None:
        """Stop ticking.  With *wait*, let an in-flight run finish; else cancel it."""
        if self._ticker is not None:
            self._ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None

        inflight = self._inflight
        if inflight is not None and not inflight.done():
            if not wait:
                inflight.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await inflight
        self._inflight = None
        logger.info("%s: stopped", self.name)

    async def _tick_loop(self) -> None:
        if self._run_on_start:
            self._fire()
        while True:
            await self._sleep(self._interval.total_seconds())
            self._fire()

    def _fire(self) -> None:
        if self._begin():
            self._inflight = asyncio.create_task(self._execute(), name=f"{self.name}-run")

    def status(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "started": self.is_started,
            "interval_seconds": self._interval.total_seconds(),
            "runs": self.runs,
            "skipped": self.skipped,
            "failures": self.failures,
        }

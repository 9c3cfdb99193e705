"""
Single-flight tick scheduler.

Arbitrates between the periodic baseline timer and ad-hoc triggers
(tab switches, page/cue changes, tab bursts, mode changes) so that at most
one evaluation cycle runs at a time.

State machine (two flags, no lock):

    Idle                 running=False
    Running              running=True,  queued=False
    RunningWithPending   running=True,  queued=True

- trigger while Idle            -> start a cycle (Running)
- trigger while running         -> queued=True (RunningWithPending)
- cycle done, queued=False      -> Idle
- cycle done, queued=True       -> wait follow_up_delay, clear queued,
                                   run exactly one follow-up cycle

Triggers carry no payload. A cycle always re-reads current sensor state, so
any number of triggers that land while a cycle is in flight are all
reflected by the single follow-up.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

CycleFn = Callable[[str], Awaitable[None]]

DEFAULT_TICK_INTERVAL_SECONDS = 10.0
# Lets side effects from the previous cycle settle before re-reading state
DEFAULT_FOLLOW_UP_DELAY_SECONDS = 0.12


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING = "running_with_pending"


@dataclass
class SchedulerStats:
    cycles_started: int = 0
    cycles_failed: int = 0
    triggers_received: int = 0
    triggers_coalesced: int = 0


class TickScheduler:
    """Runs `cycle(reason)` under the single-flight discipline."""

    def __init__(
        self,
        cycle: CycleFn,
        interval: float = DEFAULT_TICK_INTERVAL_SECONDS,
        follow_up_delay: float = DEFAULT_FOLLOW_UP_DELAY_SECONDS,
    ) -> None:
        self._cycle = cycle
        self.interval = interval
        self.follow_up_delay = follow_up_delay
        self.running = False
        self.queued = False
        self.stats = SchedulerStats()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SchedulerState:
        if not self.running:
            return SchedulerState.IDLE
        if self.queued:
            return SchedulerState.RUNNING_WITH_PENDING
        return SchedulerState.RUNNING

    def request_tick(self, reason: str = "manual") -> bool:
        """
        Ask for a cycle. Must be called from the event loop thread.

        Returns:
            True if a cycle was started now, False if the request was folded
            into the pending follow-up.
        """
        self.stats.triggers_received += 1

        if self.running:
            if self.queued:
                self.stats.triggers_coalesced += 1
            self.queued = True
            logger.debug(f"Tick requested while running ({reason}) - queued")
            return False

        # Raises outside a running loop; flags stay untouched in that case
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_chain(reason))
        self.running = True
        return True

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Fire the baseline timer until shutdown, then drain the in-flight cycle."""
        logger.info(f"Tick scheduler started (interval={self.interval}s)")
        self.request_tick("startup")

        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                self.request_tick("interval")

        await self.wait_idle()
        logger.info("Tick scheduler stopped")

    async def wait_idle(self) -> None:
        """Wait until no cycle is running and none is pending."""
        while self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run_chain(self, reason: str) -> None:
        try:
            while True:
                await self._run_once(reason)
                if not self.queued:
                    break
                await asyncio.sleep(self.follow_up_delay)
                # Cleared only now so triggers arriving during the delay
                # collapse into this follow-up instead of scheduling another
                self.queued = False
                reason = "queued"
        finally:
            self.running = False
            self.queued = False

    async def _run_once(self, reason: str) -> None:
        self.stats.cycles_started += 1
        logger.debug(f"Tick cycle start (trigger={reason})")
        try:
            await self._cycle(reason)
        except Exception as e:
            self.stats.cycles_failed += 1
            logger.error(f"Tick cycle failed (trigger={reason}): {e}", exc_info=True)

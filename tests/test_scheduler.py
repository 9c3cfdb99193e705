"""Tests for the single-flight tick scheduler."""

from __future__ import annotations

import asyncio

import pytest

from focus_companion.services.focus_engine.scheduler import SchedulerState, TickScheduler


class GatedCycle:
    """Cycle whose first run blocks until the gate opens."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.gate = asyncio.Event()
        self.active = 0
        self.max_active = 0

    async def __call__(self, reason: str) -> None:
        self.calls.append(reason)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if len(self.calls) == 1:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_idle_trigger_starts_a_cycle(self):
        cycle = GatedCycle()
        cycle.gate.set()
        scheduler = TickScheduler(cycle, follow_up_delay=0)

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.request_tick("first") is True
        await scheduler.wait_idle()

        assert cycle.calls == ["first"]
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_triggers_while_running_collapse_into_one_follow_up(self):
        cycle = GatedCycle()
        scheduler = TickScheduler(cycle, follow_up_delay=0)

        scheduler.request_tick("first")
        await asyncio.sleep(0)
        assert scheduler.state == SchedulerState.RUNNING

        for _ in range(5):
            assert scheduler.request_tick("burst") is False
        assert scheduler.state == SchedulerState.RUNNING_WITH_PENDING

        cycle.gate.set()
        await scheduler.wait_idle()

        assert cycle.calls == ["first", "queued"]
        assert cycle.max_active == 1
        assert scheduler.stats.triggers_coalesced == 4
        assert scheduler.stats.cycles_started == 2
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_trigger_during_follow_up_delay_joins_that_follow_up(self):
        cycle = GatedCycle()
        scheduler = TickScheduler(cycle, follow_up_delay=0.05)

        scheduler.request_tick("first")
        await asyncio.sleep(0)
        scheduler.request_tick("burst")
        cycle.gate.set()

        # First cycle finishes, chain is now sleeping before the follow-up
        await asyncio.sleep(0.01)
        assert scheduler.request_tick("late") is False

        await scheduler.wait_idle()
        assert cycle.calls == ["first", "queued"]

    @pytest.mark.asyncio
    async def test_no_cycles_overlap_under_many_triggers(self):
        cycle = GatedCycle()
        scheduler = TickScheduler(cycle, follow_up_delay=0)

        scheduler.request_tick("first")
        await asyncio.sleep(0)
        cycle.gate.set()
        for _ in range(20):
            scheduler.request_tick("noise")
            await asyncio.sleep(0)
        await scheduler.wait_idle()

        assert cycle.max_active == 1
        assert scheduler.state == SchedulerState.IDLE


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_cycle_clears_flags(self):
        calls = []

        async def failing(reason):
            calls.append(reason)
            raise RuntimeError("boom")

        scheduler = TickScheduler(failing, follow_up_delay=0)
        scheduler.request_tick("first")
        await scheduler.wait_idle()

        assert scheduler.running is False
        assert scheduler.queued is False
        assert scheduler.stats.cycles_failed == 1

        assert scheduler.request_tick("again") is True
        await scheduler.wait_idle()
        assert calls == ["first", "again"]

    @pytest.mark.asyncio
    async def test_failed_cycle_still_runs_pending_follow_up(self):
        calls = []
        gate = asyncio.Event()

        async def failing(reason):
            calls.append(reason)
            if reason == "first":
                await gate.wait()
                raise RuntimeError("boom")

        scheduler = TickScheduler(failing, follow_up_delay=0)
        scheduler.request_tick("first")
        await asyncio.sleep(0)
        scheduler.request_tick("burst")
        gate.set()
        await scheduler.wait_idle()

        assert calls == ["first", "queued"]
        assert scheduler.state == SchedulerState.IDLE


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_startup_and_interval_ticks(self):
        calls = []

        async def cycle(reason):
            calls.append(reason)

        scheduler = TickScheduler(cycle, interval=0.02, follow_up_delay=0)
        shutdown = asyncio.Event()
        runner = asyncio.create_task(scheduler.run(shutdown))

        await asyncio.sleep(0.09)
        shutdown.set()
        await asyncio.wait_for(runner, timeout=1.0)

        assert calls[0] == "startup"
        assert calls.count("interval") >= 2
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_in_flight_cycle(self):
        finished = []

        async def slow(reason):
            await asyncio.sleep(0.05)
            finished.append(reason)

        scheduler = TickScheduler(slow, interval=10.0)
        shutdown = asyncio.Event()
        runner = asyncio.create_task(scheduler.run(shutdown))
        await asyncio.sleep(0)
        shutdown.set()
        await asyncio.wait_for(runner, timeout=1.0)

        assert finished == ["startup"]


class TestOutsideEventLoop:
    def test_request_without_loop_leaves_scheduler_idle(self):
        calls = []

        async def cycle(reason):
            calls.append(reason)

        scheduler = TickScheduler(cycle, follow_up_delay=0)
        with pytest.raises(RuntimeError):
            scheduler.request_tick("sync-caller")

        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.running is False

        async def later():
            started = scheduler.request_tick("later")
            await scheduler.wait_idle()
            return started

        assert asyncio.run(later()) is True
        assert calls == ["later"]
        assert scheduler.state == SchedulerState.IDLE

"""
Tests for the debounce timer and single-flight queue.
"""

import asyncio
import logging

import pytest

from ordersync.sync.scheduler import CoalescingScheduler


class Counter:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


class TestDebounce:

    @pytest.mark.asyncio
    async def test_burst_fires_once(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter, default_delay=0.02)
        for _ in range(5):
            scheduler.schedule()
            await asyncio.sleep(0.005)
        assert counter.calls == 0
        await asyncio.sleep(0.05)
        await scheduler.wait_idle()
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_rearm_restarts_the_delay(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter, default_delay=0.05)
        scheduler.schedule()
        await asyncio.sleep(0.03)
        scheduler.schedule()
        await asyncio.sleep(0.03)
        assert counter.calls == 0
        await asyncio.sleep(0.05)
        await scheduler.wait_idle()
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_non_positive_delay_still_fires(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter)
        scheduler.schedule(0)
        await asyncio.sleep(0.02)
        await scheduler.wait_idle()
        assert counter.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_disarms(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter, default_delay=0.01)
        scheduler.schedule()
        assert scheduler.is_armed
        scheduler.cancel()
        assert not scheduler.is_armed
        await asyncio.sleep(0.03)
        assert counter.calls == 0

    @pytest.mark.asyncio
    async def test_flush_fires_immediately(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter, default_delay=10)
        scheduler.schedule()
        await scheduler.flush()
        assert counter.calls == 1
        assert not scheduler.is_armed

    @pytest.mark.asyncio
    async def test_close_prevents_new_timers(self):
        counter = Counter()
        scheduler = CoalescingScheduler(counter, default_delay=0.01)
        await scheduler.close()
        scheduler.schedule()
        assert not scheduler.is_armed
        await asyncio.sleep(0.03)
        assert counter.calls == 0

    @pytest.mark.asyncio
    async def test_failing_callback_is_logged(self, caplog):
        async def boom():
            raise RuntimeError("boom")

        scheduler = CoalescingScheduler(boom, default_delay=0.001)
        with caplog.at_level(logging.ERROR, logger="ordersync.sync.scheduler"):
            scheduler.schedule()
            await asyncio.sleep(0.02)
            await scheduler.wait_idle()
        assert "Scheduled task failed" in caplog.text


class TestSingleFlightQueue:

    @pytest.mark.asyncio
    async def test_tasks_run_one_at_a_time_in_submission_order(self):
        scheduler = CoalescingScheduler(Counter())
        events = []
        running = 0
        overlap = []

        def task(name, duration):
            async def run():
                nonlocal running
                running += 1
                overlap.append(running)
                events.append(f"start {name}")
                await asyncio.sleep(duration)
                events.append(f"end {name}")
                running -= 1
                return name
            return run

        results = await asyncio.gather(
            scheduler.run_exclusive(task("slow", 0.03)),
            scheduler.run_exclusive(task("fast", 0.0)),
            scheduler.run_exclusive(task("medium", 0.01)),
        )
        assert results == ["slow", "fast", "medium"]
        assert events == [
            "start slow", "end slow",
            "start fast", "end fast",
            "start medium", "end medium",
        ]
        assert max(overlap) == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_block_the_queue(self):
        scheduler = CoalescingScheduler(Counter())

        async def fail():
            raise ValueError("nope")

        async def ok():
            return "ok"

        with pytest.raises(ValueError):
            await scheduler.run_exclusive(fail)
        assert await scheduler.run_exclusive(ok) == "ok"

    @pytest.mark.asyncio
    async def test_wait_idle_waits_for_queued_work(self):
        scheduler = CoalescingScheduler(Counter())
        done = []

        async def work():
            await asyncio.sleep(0.02)
            done.append(True)

        task = asyncio.ensure_future(scheduler.run_exclusive(work))
        await asyncio.sleep(0)
        assert scheduler.is_busy
        await scheduler.wait_idle()
        assert done == [True]
        await task

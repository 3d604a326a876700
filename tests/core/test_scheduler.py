# tests/core/test_scheduler.py

import asyncio

import pytest

from costcompass.core.scheduler import Scheduler


class FakeClock:
    """Monotonic clock that only moves when a job or a sleep advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


async def test_fixed_cadence_subtracts_job_duration():
    clock = FakeClock()
    scheduler = Scheduler(clock=clock, sleep=clock.sleep)
    started = []

    async def job():
        started.append(clock.now)
        clock.now += 2.0

    scheduler.add_job(job, interval_seconds=10, max_runs=3)
    await scheduler.wait()

    assert started == [0.0, 10.0, 20.0]
    assert clock.sleeps == [8.0, 8.0, 8.0]


async def test_failed_job_does_not_stop_the_loop():
    clock = FakeClock()
    scheduler = Scheduler(clock=clock, sleep=clock.sleep)
    calls = []

    async def flaky_job():
        calls.append(clock.now)
        if len(calls) == 1:
            raise RuntimeError("boom")

    scheduler.add_job(flaky_job, interval_seconds=5, max_runs=3)
    await scheduler.wait()

    assert calls == [0.0, 5.0, 10.0]


async def test_slow_job_sleeps_zero():
    clock = FakeClock()
    scheduler = Scheduler(clock=clock, sleep=clock.sleep)

    async def slow_job():
        clock.now += 15.0

    scheduler.add_job(slow_job, interval_seconds=10, max_runs=2)
    await scheduler.wait()

    assert clock.sleeps == [0.0, 0.0]


async def test_add_job_from_string_and_stop():
    scheduler = Scheduler()
    event = asyncio.Event()

    async def job():
        event.set()

    scheduler.add_job_from_string(job, "1h")
    await asyncio.wait_for(event.wait(), timeout=1)
    await scheduler.stop()

    assert scheduler.tasks == []


def test_invalid_interval_string_is_rejected():
    scheduler = Scheduler()

    async def job():
        pass

    with pytest.raises(ValueError):
        scheduler.add_job_from_string(job, "every minute")

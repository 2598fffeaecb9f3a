"""Unit tests for PeriodicTask scheduling."""

import asyncio
import logging

import pytest

from compose_external_dns.errors import SchedulerStateError
from compose_external_dns.scheduler.periodic import PeriodicTask, State


class CountingTask(PeriodicTask):
    """Counts runs and tracks how many are in progress at once."""

    def __init__(self, interval: float = 0.01, duration: float = 0.0, fail: bool = False):
        self.interval = interval
        self.duration = duration
        self.fail = fail
        self.runs = 0
        self.active = 0
        self.max_active = 0
        super().__init__()

    @property
    def name(self) -> str:
        return "CountingTask"

    @property
    def interval_seconds(self) -> float:
        return self.interval

    async def job(self) -> None:
        self.runs += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.duration:
                await asyncio.sleep(self.duration)
            if self.fail:
                raise RuntimeError("job failed")
        finally:
            self.active -= 1


def test_start_runs_job_before_returning() -> None:
    async def scenario():
        task = CountingTask(interval=60)
        await task.start()
        runs = task.runs
        task.stop()
        return runs

    assert asyncio.run(scenario()) == 1


def test_start_twice_raises() -> None:
    async def scenario():
        task = CountingTask(interval=60)
        await task.start()
        try:
            with pytest.raises(SchedulerStateError):
                await task.start()
        finally:
            task.stop()

    asyncio.run(scenario())


def test_stop_when_stopped_raises() -> None:
    task = CountingTask()

    assert task.state is State.STOPPED
    with pytest.raises(SchedulerStateError):
        task.stop()


def test_job_repeats_on_interval() -> None:
    async def scenario():
        task = CountingTask(interval=0.01)
        await task.start()
        await asyncio.sleep(0.1)
        task.stop()
        return task.runs

    assert asyncio.run(scenario()) >= 3


def test_slow_runs_never_overlap() -> None:
    async def scenario():
        task = CountingTask(interval=0.001, duration=0.02)
        await task.start()
        await asyncio.sleep(0.1)
        task.stop()
        await asyncio.sleep(0.03)
        return task

    task = asyncio.run(scenario())

    assert task.runs >= 2
    assert task.max_active == 1


def test_stop_cancels_pending_run() -> None:
    async def scenario():
        task = CountingTask(interval=0.02)
        await task.start()
        task.stop()
        await asyncio.sleep(0.08)
        return task

    task = asyncio.run(scenario())

    assert task.runs == 1
    assert not task.is_running


def test_stop_during_run_lets_it_finish_without_another() -> None:
    async def scenario():
        task = CountingTask(interval=0.001, duration=0.03)
        await task.start()
        # The loop's second run is now in progress
        await asyncio.sleep(0.01)
        task.stop()
        await asyncio.sleep(0.06)
        return task

    task = asyncio.run(scenario())

    assert task.runs == 2
    assert task.active == 0


def test_failing_job_keeps_schedule(caplog) -> None:
    async def scenario():
        task = CountingTask(interval=0.01, fail=True)
        await task.start()
        await asyncio.sleep(0.05)
        task.stop()
        return task.runs

    runs = asyncio.run(scenario())

    assert runs >= 2
    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert errors and "job failed" in errors[0].getMessage()


def test_restart_after_stop() -> None:
    async def scenario():
        task = CountingTask(interval=60)
        await task.start()
        task.stop()
        await task.start()
        running = task.is_running
        task.on_shutdown()
        return task, running

    task, running = asyncio.run(scenario())

    assert running
    assert task.runs == 2
    assert task.state is State.STOPPED


def test_restart_during_run_waits_for_it() -> None:
    async def scenario():
        task = CountingTask(interval=0.001, duration=0.05)
        await task.start()
        # The loop's second run is now in progress
        await asyncio.sleep(0.01)
        task.stop()
        await task.start()
        task.stop()
        await asyncio.sleep(0.08)
        return task

    task = asyncio.run(scenario())

    assert task.max_active == 1
    assert task.runs == 3

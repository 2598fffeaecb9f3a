"""
Periodic task scheduling for Compose-External-DNS.

A ``PeriodicTask`` runs its job once when started, then again ``interval``
seconds after each run completes. A run never overlaps the previous one, even
when it takes longer than the interval.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from compose_external_dns.errors import SchedulerStateError


class State(Enum):
    STOPPED = "stopped"
    STARTED = "started"


class PeriodicTask(ABC):
    """
    Base class for jobs repeated on an interval.

    Subclasses provide ``name``, ``interval_seconds`` and ``job()``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(
            f"compose-external-dns.scheduler.{self.name}"
        )
        self._state = State.STOPPED
        self._task: Optional[asyncio.Task] = None
        self._sleeping = False
        # Incremented on every start so a loop left over from a previous start exits
        self._generation = 0
        # Held for the whole of a run, a restart waits for a run left in flight by stop()
        self._run_lock = asyncio.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Name used in log messages."""

    @property
    @abstractmethod
    def interval_seconds(self) -> float:
        """Delay between the end of one run and the start of the next."""

    @abstractmethod
    async def job(self) -> None:
        """The work performed on every run."""

    @property
    def state(self) -> State:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is State.STARTED

    async def start(self) -> None:
        """
        Run the job immediately, then keep running it on the interval.

        Returns once the first run has completed.

        Raises:
            SchedulerStateError: If already started
        """
        if self._state is State.STARTED:
            raise SchedulerStateError(f"{self.name}, start: already started")

        self._state = State.STARTED
        self._generation += 1
        generation = self._generation
        self.logger.debug(
            f"{self.name} starting with interval {self.interval_seconds} seconds"
        )

        await self._execute()

        # stop() may have been called during the first run
        if self._state is State.STARTED and generation == self._generation:
            self._task = asyncio.create_task(self._loop(generation))

    def stop(self) -> None:
        """
        Stop re-running the job.

        A run in progress completes but is not followed by another. A
        following start() waits for it before running the job again.

        Raises:
            SchedulerStateError: If already stopped
        """
        if self._state is State.STOPPED:
            raise SchedulerStateError(f"{self.name}, stop: already stopped")

        self._state = State.STOPPED
        if self._task is not None and self._sleeping:
            self._task.cancel()
        self._task = None
        self.logger.debug(f"{self.name} stopped")

    def on_shutdown(self) -> None:
        """Teardown hook, stops the task with the same contract as ``stop()``."""
        self.stop()

    def _is_current(self, generation: int) -> bool:
        return self._state is State.STARTED and generation == self._generation

    async def _loop(self, generation: int) -> None:
        try:
            while self._is_current(generation):
                self._sleeping = True
                try:
                    await asyncio.sleep(self.interval_seconds)
                finally:
                    self._sleeping = False

                if not self._is_current(generation):
                    break
                await self._execute()
        except asyncio.CancelledError:
            self.logger.debug(f"{self.name} pending run cancelled")

    async def _execute(self) -> None:
        """Run the job once, logging failures so the schedule continues."""
        async with self._run_lock:
            try:
                await self.job()
            except Exception as e:
                self.logger.error(f"Error in {self.name} run: {e}", exc_info=True)

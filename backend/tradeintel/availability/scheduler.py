"""
Interval scheduling for the provider probe loop.

``AsyncioScheduler`` runs jobs on the event loop; ``ManualScheduler`` keeps
its own clock and runs due jobs only when ``advance`` is awaited, so tests
can step time deterministically.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

logger = logging.getLogger("tradeintel.scheduler")

JobCallback = Callable[[], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledJob:
    """Cancellable handle for a recurring job."""

    def __init__(self, interval_seconds: float, callback: JobCallback):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.cancelled = False
        self._task: asyncio.Task | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class Scheduler(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time as seen by jobs scheduled here (timezone-aware UTC)."""

    @abstractmethod
    def schedule_every(self, interval_seconds: float, callback: JobCallback) -> ScheduledJob:
        """Run ``callback`` every ``interval_seconds`` until the job is cancelled."""


class AsyncioScheduler(Scheduler):
    """Runs each job as an asyncio task on the running event loop."""

    def now(self) -> datetime:
        return utcnow()

    def schedule_every(self, interval_seconds: float, callback: JobCallback) -> ScheduledJob:
        job = ScheduledJob(interval_seconds, callback)
        job._task = asyncio.get_running_loop().create_task(self._run(job))
        return job

    async def _run(self, job: ScheduledJob) -> None:
        while not job.cancelled:
            await asyncio.sleep(job.interval_seconds)
            if job.cancelled:
                break
            try:
                await job.callback()
            except Exception:
                logger.exception("Scheduled job failed")


class ManualScheduler(Scheduler):
    """Deterministic scheduler with a steppable clock."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self._jobs: list[tuple[ScheduledJob, datetime]] = []

    def now(self) -> datetime:
        return self._now

    def schedule_every(self, interval_seconds: float, callback: JobCallback) -> ScheduledJob:
        job = ScheduledJob(interval_seconds, callback)
        self._jobs.append((job, self._now + timedelta(seconds=interval_seconds)))
        return job

    @property
    def active_jobs(self) -> list[ScheduledJob]:
        return [job for job, _ in self._jobs if not job.cancelled]

    async def advance(self, seconds: float) -> int:
        """Move the clock forward, running every job that falls due. Returns the run count."""
        target = self._now + timedelta(seconds=seconds)
        runs = 0
        while True:
            due = [(job, at) for job, at in self._jobs if not job.cancelled and at <= target]
            if not due:
                break
            job, at = min(due, key=lambda entry: entry[1])
            self._now = at
            self._jobs = [
                (j, a + timedelta(seconds=j.interval_seconds)) if j is job else (j, a)
                for j, a in self._jobs
            ]
            await job.callback()
            runs += 1
        self._now = target
        return runs

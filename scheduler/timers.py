"""
One-shot timers for reminder delivery using APScheduler.

Each pending reminder gets its own date-triggered job on the asyncio
scheduler. Jobs live in memory only: the reminder store is the durable
source of truth and ``ReminderScheduler.initialize`` rebuilds every timer
after a restart.
"""

from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Sequence
from uuid import uuid4

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from scheduler.job_table import TimerHandle
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log")


class Timers(Protocol):
    """Runs a coroutine function once at a given time."""

    def call_at(
        self,
        run_at: datetime,
        func: Callable[..., Any],
        args: Sequence[Any] = (),
        name: Optional[str] = None,
    ) -> TimerHandle:
        ...

    def start(self) -> None:
        ...

    def shutdown(self) -> None:
        ...


class ScheduledJob:
    """Cancellable handle around an APScheduler job."""

    def __init__(self, job: Job):
        self.job = job

    @property
    def id(self) -> str:
        return self.job.id

    def cancel(self) -> None:
        # A date job is removed by APScheduler once it has been submitted,
        # so cancelling after the callback started is a no-op.
        try:
            self.job.remove()
        except JobLookupError:
            pass


class APSchedulerTimers:
    """Timers backed by an in-memory ``AsyncIOScheduler``."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    def call_at(
        self,
        run_at: datetime,
        func: Callable[..., Any],
        args: Sequence[Any] = (),
        name: Optional[str] = None,
    ) -> ScheduledJob:
        job_name = name or getattr(func, "__name__", "timer")
        job = self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_at),
            args=list(args),
            id=f"{job_name}:{uuid4().hex}",
            name=job_name,
            # Late timers still fire; fire() re-validates the reminder anyway.
            misfire_grace_time=None,
        )
        return ScheduledJob(job)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Timer scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Timer scheduler stopped")

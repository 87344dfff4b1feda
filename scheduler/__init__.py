"""Reminder scheduling and delivery."""

from .job_table import JobTable
from .reminders import FireOutcome, ReminderScheduler, create_scheduler, setup_scheduler

__all__ = [
    "FireOutcome",
    "JobTable",
    "ReminderScheduler",
    "create_scheduler",
    "setup_scheduler",
]

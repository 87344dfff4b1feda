"""Pydantic models for data validation and serialization."""

from .reminder import (
    ReminderCreate,
    ReminderKind,
    ReminderMessage,
    ReminderRecord,
    ReminderTarget,
    SendResult,
    StoreOutcome,
)

__all__ = [
    "ReminderCreate",
    "ReminderKind",
    "ReminderMessage",
    "ReminderRecord",
    "ReminderTarget",
    "SendResult",
    "StoreOutcome",
]

"""Reminder store implementations and factory."""

from typing import Optional

from config import settings

from .base import RecipientDirectory, ReminderStore
from .memory_store import InMemoryReminderStore
from .supabase_client import SupabaseReminderStore

__all__ = [
    "InMemoryReminderStore",
    "RecipientDirectory",
    "ReminderStore",
    "SupabaseReminderStore",
    "get_reminder_store",
]

_store: Optional[ReminderStore] = None


def get_reminder_store() -> ReminderStore:
    """Get or create the configured reminder store."""
    global _store
    if _store is None:
        if settings.uses_supabase:
            _store = SupabaseReminderStore()
        else:
            _store = InMemoryReminderStore(
                retain_sent=settings.retain_sent_reminders
            )
    return _store

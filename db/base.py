"""
Collaborator interfaces the reminder scheduler depends on.

Any object with these coroutine methods can be handed to the scheduler;
the Supabase and in-memory stores both implement them.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from models.reminder import ReminderCreate, ReminderRecord, StoreOutcome


class ReminderStore(Protocol):
    """Persistent table of reminder records."""

    async def list_future(self, now: datetime) -> List[ReminderRecord]:
        """Unsent reminders with ``fire_at > now``, ascending ``fire_at``."""
        ...

    async def list_overdue(self, now: datetime) -> List[ReminderRecord]:
        """Unsent reminders with ``fire_at <= now``, ascending ``fire_at``."""
        ...

    async def list_by_subject(self, subject_id: str) -> List[ReminderRecord]:
        ...

    async def get_by_id(self, reminder_id: str) -> Optional[ReminderRecord]:
        ...

    async def finalize_sent(self, reminder_id: str) -> StoreOutcome:
        """Set ``sent_at`` (and delete) only if the reminder is still unsent."""
        ...

    async def increment_tries(self, reminder_id: str) -> StoreOutcome:
        ...

    async def create(self, data: ReminderCreate) -> ReminderRecord:
        ...

    async def update_fire_at(
        self, reminder_id: str, fire_at: datetime
    ) -> Optional[ReminderRecord]:
        ...

    async def delete(self, reminder_id: str) -> bool:
        ...

    async def purge_sent(self) -> int:
        ...


class RecipientDirectory(Protocol):
    """Lookups deciding whether the bot may direct-message a chat."""

    async def get_username(self, chat_id: str) -> Optional[str]:
        ...

    async def has_write_access(self, chat_id: str) -> bool:
        ...

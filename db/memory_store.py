"""
In-memory reminder store for local development and tests.

Mirrors the conditional-write semantics of the Supabase store. All methods
complete without awaiting, so each one is atomic on the event loop.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from models.reminder import ReminderCreate, ReminderRecord, StoreOutcome
from utils.datetime_utils import ensure_aware, utc_now


class InMemoryReminderStore:
    """Dictionary-backed reminder store and recipient directory."""

    def __init__(self, retain_sent: bool = False, default_write_access: bool = True):
        self.retain_sent = retain_sent
        self.default_write_access = default_write_access
        self._reminders: Dict[str, ReminderRecord] = {}
        self.usernames: Dict[str, str] = {}
        self.write_access: Dict[str, bool] = {}

    def _pending(self) -> List[ReminderRecord]:
        rows = [r for r in self._reminders.values() if r.sent_at is None]
        return sorted(rows, key=lambda r: r.fire_at)

    def add(self, record: ReminderRecord) -> ReminderRecord:
        """Insert a fully-formed record, keeping its id."""
        stored = record.model_copy(deep=True)
        stored.fire_at = ensure_aware(stored.fire_at)
        self._reminders[record.id] = stored
        return record

    def all(self) -> List[ReminderRecord]:
        return [r.model_copy(deep=True) for r in self._reminders.values()]

    async def list_future(self, now: datetime) -> List[ReminderRecord]:
        now = ensure_aware(now)
        return [r.model_copy(deep=True) for r in self._pending() if r.fire_at > now]

    async def list_overdue(self, now: datetime) -> List[ReminderRecord]:
        now = ensure_aware(now)
        return [r.model_copy(deep=True) for r in self._pending() if r.fire_at <= now]

    async def list_by_subject(self, subject_id: str) -> List[ReminderRecord]:
        return [
            r.model_copy(deep=True)
            for r in self._pending()
            if r.subject_id == str(subject_id)
        ]

    async def get_by_id(self, reminder_id: str) -> Optional[ReminderRecord]:
        record = self._reminders.get(reminder_id)
        return record.model_copy(deep=True) if record else None

    async def finalize_sent(self, reminder_id: str) -> StoreOutcome:
        record = self._reminders.get(reminder_id)
        if record is None:
            return StoreOutcome.NOT_FOUND
        if record.sent_at is not None:
            return StoreOutcome.ALREADY_HANDLED

        now = utc_now()
        record.sent_at = now
        record.updated_at = now
        if not self.retain_sent:
            del self._reminders[reminder_id]
        return StoreOutcome.OK

    async def increment_tries(self, reminder_id: str) -> StoreOutcome:
        record = self._reminders.get(reminder_id)
        if record is None:
            return StoreOutcome.NOT_FOUND
        record.tries += 1
        record.updated_at = utc_now()
        return StoreOutcome.OK

    async def purge_sent(self) -> int:
        sent = [rid for rid, r in self._reminders.items() if r.sent_at is not None]
        for rid in sent:
            del self._reminders[rid]
        return len(sent)

    async def create(self, data: ReminderCreate) -> ReminderRecord:
        now = utc_now()
        record = ReminderRecord(
            id=str(uuid4()),
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        record.fire_at = ensure_aware(record.fire_at)
        self._reminders[record.id] = record
        return record.model_copy(deep=True)

    async def update_fire_at(
        self, reminder_id: str, fire_at: datetime
    ) -> Optional[ReminderRecord]:
        record = self._reminders.get(reminder_id)
        if record is None:
            return None
        record.fire_at = ensure_aware(fire_at)
        record.updated_at = utc_now()
        return record.model_copy(deep=True)

    async def delete(self, reminder_id: str) -> bool:
        return self._reminders.pop(reminder_id, None) is not None

    async def get_username(self, chat_id: str) -> Optional[str]:
        return self.usernames.get(str(chat_id))

    async def has_write_access(self, chat_id: str) -> bool:
        return self.write_access.get(str(chat_id), self.default_write_access)

"""
Supabase reminder store.
Handles all database interactions for reminders and recipient lookups.

Row Level Security (RLS) Notes:
==============================
The reminder service runs with the service_role key, which bypasses RLS.
The webapp reaches the same tables through its own API and should be
restricted by RLS policies configured in the Supabase dashboard.

Expected schema (SQL):
----------------------
CREATE TABLE reminders (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    subject_id text NOT NULL,
    chat_id text NOT NULL,
    fire_at timestamptz NOT NULL,
    sent_at timestamptz,
    tries integer NOT NULL DEFAULT 0,
    reply_to_message_id bigint,
    kind text NOT NULL DEFAULT 'event',
    target text,
    offset_minutes integer,
    created_by text,
    created_at timestamptz DEFAULT now(),
    updated_at timestamptz DEFAULT now()
);
CREATE INDEX reminders_pending_idx ON reminders (fire_at) WHERE sent_at IS NULL;
CREATE INDEX reminders_subject_idx ON reminders (subject_id);
"""

from datetime import datetime
from typing import List, Optional

from supabase import AsyncClient, acreate_client

from config import settings
from models.reminder import ReminderCreate, ReminderRecord, StoreOutcome
from utils.datetime_utils import parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import ConfigurationError, ReminderStoreError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log")


class SupabaseReminderStore:
    """
    Supabase-backed reminder store.

    Every mutation of a single reminder is keyed by id and conditioned on
    the row's current state, so two racing fires for the same reminder
    cannot both finalize it or lose a ``tries`` increment.
    """

    def __init__(self, retain_sent: Optional[bool] = None):
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")
        self.client: Optional[AsyncClient] = None
        self.table_name = settings.reminders_table
        self.retain_sent = (
            settings.retain_sent_reminders if retain_sent is None else retain_sent
        )

    async def _get_client(self) -> AsyncClient:
        # acreate_client is a coroutine, so the client is built on first use
        if self.client is None:
            self.client = await acreate_client(
                settings.supabase_url, settings.supabase_key
            )
        return self.client

    async def _table(self, name: Optional[str] = None):
        client = await self._get_client()
        return client.table(name or self.table_name)

    # ========== Queries ==========

    async def list_future(self, now: datetime) -> List[ReminderRecord]:
        """Unsent reminders due after ``now``."""
        try:
            response = await (
                (await self._table())
                .select("*")
                .is_("sent_at", "null")
                .gt("fire_at", to_iso_string(now))
                .order("fire_at", desc=False)
                .execute()
            )
            return [self._parse_reminder(item) for item in response.data]
        except Exception as e:
            raise ReminderStoreError(f"Failed to list future reminders: {e}") from e

    async def list_overdue(self, now: datetime) -> List[ReminderRecord]:
        """Unsent reminders due at or before ``now``."""
        try:
            response = await (
                (await self._table())
                .select("*")
                .is_("sent_at", "null")
                .lte("fire_at", to_iso_string(now))
                .order("fire_at", desc=False)
                .execute()
            )
            return [self._parse_reminder(item) for item in response.data]
        except Exception as e:
            raise ReminderStoreError(f"Failed to list overdue reminders: {e}") from e

    async def list_by_subject(self, subject_id: str) -> List[ReminderRecord]:
        """Unsent reminders of one task or event."""
        try:
            response = await (
                (await self._table())
                .select("*")
                .eq("subject_id", str(subject_id))
                .is_("sent_at", "null")
                .order("fire_at", desc=False)
                .execute()
            )
            return [self._parse_reminder(item) for item in response.data]
        except Exception as e:
            raise ReminderStoreError(
                f"Failed to list reminders for subject {subject_id}: {e}"
            ) from e

    async def get_by_id(self, reminder_id: str) -> Optional[ReminderRecord]:
        try:
            table = await self._table()
            response = await table.select("*").eq("id", reminder_id).limit(1).execute()
            if response.data:
                return self._parse_reminder(response.data[0])
            return None
        except Exception as e:
            raise ReminderStoreError(f"Failed to get reminder: {e}") from e

    # ========== Finalization ==========

    async def finalize_sent(self, reminder_id: str) -> StoreOutcome:
        """
        Mark a reminder as sent, then delete it unless sent rows are retained.

        The update only matches a row whose ``sent_at`` is still null, so a
        second finalization of the same reminder observes ALREADY_HANDLED.
        If the delete fails the row keeps ``sent_at`` and is never delivered
        again; ``purge_sent`` removes it later.
        """
        now = to_iso_string(utc_now())
        try:
            response = await (
                (await self._table())
                .update({"sent_at": now, "updated_at": now})
                .eq("id", reminder_id)
                .is_("sent_at", "null")
                .execute()
            )
        except Exception as e:
            raise ReminderStoreError(f"Failed to finalize reminder: {e}") from e

        if not response.data:
            existing = await self.get_by_id(reminder_id)
            if existing is None:
                return StoreOutcome.NOT_FOUND
            return StoreOutcome.ALREADY_HANDLED

        if not self.retain_sent:
            try:
                await (
                    (await self._table())
                    .delete()
                    .eq("id", reminder_id)
                    .not_.is_("sent_at", "null")
                    .execute()
                )
            except Exception as e:
                logger.warning(f"Delete after send failed for {reminder_id}: {e}")

        return StoreOutcome.OK

    async def increment_tries(self, reminder_id: str) -> StoreOutcome:
        """
        Add one failed attempt.

        PostgREST has no atomic increment, so this is a compare-and-swap on
        the current ``tries`` value, retried a bounded number of times.
        """
        for _ in range(max(1, settings.tries_update_attempts)):
            current = await self.get_by_id(reminder_id)
            if current is None:
                return StoreOutcome.NOT_FOUND

            try:
                response = await (
                    (await self._table())
                    .update(
                        {
                            "tries": current.tries + 1,
                            "updated_at": to_iso_string(utc_now()),
                        }
                    )
                    .eq("id", reminder_id)
                    .eq("tries", current.tries)
                    .execute()
                )
            except Exception as e:
                raise ReminderStoreError(f"Failed to increment tries: {e}") from e

            if response.data:
                return StoreOutcome.OK

        raise ReminderStoreError(
            f"Failed to increment tries for {reminder_id}: concurrent updates"
        )

    async def purge_sent(self) -> int:
        """Delete rows left with ``sent_at`` set by an interrupted finalization."""
        try:
            table = await self._table()
            response = await table.delete().not_.is_("sent_at", "null").execute()
            return len(response.data or [])
        except Exception as e:
            raise ReminderStoreError(f"Failed to purge sent reminders: {e}") from e

    # ========== Owning-feature Operations ==========

    async def create(self, data: ReminderCreate) -> ReminderRecord:
        try:
            payload = data.model_dump(exclude_none=True)
            payload["fire_at"] = to_iso_string(data.fire_at)

            table = await self._table()
            response = await table.insert(payload).execute()

            if not response.data:
                raise ValueError("Failed to create reminder: no data returned")

            return self._parse_reminder(response.data[0])
        except Exception as e:
            raise ReminderStoreError(f"Failed to create reminder: {e}") from e

    async def update_fire_at(
        self, reminder_id: str, fire_at: datetime
    ) -> Optional[ReminderRecord]:
        try:
            response = await (
                (await self._table())
                .update(
                    {
                        "fire_at": to_iso_string(fire_at),
                        "updated_at": to_iso_string(utc_now()),
                    }
                )
                .eq("id", reminder_id)
                .execute()
            )

            if not response.data:
                return None

            return self._parse_reminder(response.data[0])
        except Exception as e:
            raise ReminderStoreError(f"Failed to update reminder time: {e}") from e

    async def delete(self, reminder_id: str) -> bool:
        try:
            table = await self._table()
            response = await table.delete().eq("id", reminder_id).execute()
            return len(response.data) > 0
        except Exception as e:
            raise ReminderStoreError(f"Failed to delete reminder: {e}") from e

    # ========== Recipient Operations ==========

    async def get_username(self, chat_id: str) -> Optional[str]:
        try:
            response = await (
                (await self._table(settings.users_table))
                .select("username")
                .eq("chat_id", str(chat_id))
                .limit(1)
                .execute()
            )
            if response.data:
                return response.data[0].get("username")
            return None
        except Exception as e:
            raise ReminderStoreError(f"Failed to get user: {e}") from e

    async def has_write_access(self, chat_id: str) -> bool:
        try:
            response = await (
                (await self._table(settings.notification_settings_table))
                .select("write_access_granted")
                .eq("telegram_id", str(chat_id))
                .limit(1)
                .execute()
            )
            if not response.data:
                return False
            return bool(response.data[0].get("write_access_granted"))
        except Exception as e:
            raise ReminderStoreError(
                f"Failed to get notification settings: {e}"
            ) from e

    # ========== Helper Methods ==========

    def _parse_reminder(self, item: dict) -> ReminderRecord:
        """
        Parse reminder data from database response.

        Args:
            item: Raw reminder row

        Returns:
            Parsed ReminderRecord
        """
        item = item.copy()
        for field in ["fire_at", "sent_at", "created_at", "updated_at"]:
            if isinstance(item.get(field), str):
                item[field] = parse_iso_datetime(item[field])
        item["id"] = str(item["id"])
        item["chat_id"] = str(item["chat_id"])
        item["subject_id"] = str(item["subject_id"])
        if item.get("tries") is None:
            item["tries"] = 0
        return ReminderRecord(**item)

"""
Unit tests for the Supabase reminder store.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from db.supabase_client import SupabaseReminderStore
from models.reminder import ReminderCreate, StoreOutcome
from utils.exceptions import ConfigurationError, ReminderStoreError

ROW = {
    "id": "3f1c",
    "subject_id": "event_1",
    "chat_id": 1001,
    "fire_at": "2026-03-01T12:00:00Z",
    "sent_at": None,
    "tries": 0,
    "reply_to_message_id": None,
    "kind": "event",
    "target": None,
    "offset_minutes": 10,
}

NOW = datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)


class TestSupabaseReminderStore:
    """Test Supabase reminder store operations."""

    @pytest.fixture
    def mock_table(self):
        table = MagicMock()
        for method in ("select", "is_", "gt", "lte", "eq", "order", "limit",
                       "update", "delete", "insert"):
            getattr(table, method).return_value = table
        table.not_ = table
        table.execute = AsyncMock()
        return table

    @pytest.fixture
    def mock_client(self, mock_table):
        client = MagicMock()
        client.table.return_value = mock_table
        return client

    @pytest.fixture
    def store(self, mock_client):
        store = SupabaseReminderStore(retain_sent=False)
        store.client = mock_client
        return store

    @pytest.mark.asyncio
    async def test_list_future_filters_unsent_after_now(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[ROW])

        result = await store.list_future(NOW)

        assert [r.id for r in result] == ["3f1c"]
        assert result[0].chat_id == "1001"
        assert result[0].fire_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        mock_table.is_.assert_called_with("sent_at", "null")
        mock_table.gt.assert_called_once_with("fire_at", NOW.isoformat())
        mock_table.order.assert_called_once_with("fire_at", desc=False)

    @pytest.mark.asyncio
    async def test_list_overdue_uses_lte(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[])

        assert await store.list_overdue(NOW) == []
        mock_table.lte.assert_called_once_with("fire_at", NOW.isoformat())

    @pytest.mark.asyncio
    async def test_list_by_subject(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[ROW])

        result = await store.list_by_subject("event_1")

        assert len(result) == 1
        mock_table.eq.assert_called_once_with("subject_id", "event_1")

    @pytest.mark.asyncio
    async def test_query_failure_raises_store_error(self, store, mock_table):
        mock_table.execute.side_effect = Exception("connection refused")

        with pytest.raises(ReminderStoreError):
            await store.list_future(NOW)

    @pytest.mark.asyncio
    async def test_get_by_id_not_found(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[])

        assert await store.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_finalize_sent_updates_then_deletes(self, store, mock_table):
        mock_table.execute.side_effect = [
            MagicMock(data=[{**ROW, "sent_at": "2026-03-01T12:00:01Z"}]),
            MagicMock(data=[ROW]),
        ]

        assert await store.finalize_sent("3f1c") is StoreOutcome.OK

        update_payload = mock_table.update.call_args[0][0]
        assert "sent_at" in update_payload
        mock_table.delete.assert_called_once()

    @pytest.mark.asyncio
    async def test_finalize_sent_retained_does_not_delete(self, mock_client, mock_table):
        store = SupabaseReminderStore(retain_sent=True)
        store.client = mock_client
        mock_table.execute.return_value = MagicMock(data=[ROW])

        assert await store.finalize_sent("3f1c") is StoreOutcome.OK
        mock_table.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_finalize_sent_twice_reports_already_handled(self, store, mock_table):
        mock_table.execute.side_effect = [
            MagicMock(data=[]),  # conditional update matched nothing
            MagicMock(data=[{**ROW, "sent_at": "2026-03-01T12:00:01Z"}]),
        ]

        assert await store.finalize_sent("3f1c") is StoreOutcome.ALREADY_HANDLED
        mock_table.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_finalize_sent_missing_reports_not_found(self, store, mock_table):
        mock_table.execute.side_effect = [MagicMock(data=[]), MagicMock(data=[])]

        assert await store.finalize_sent("3f1c") is StoreOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_finalize_sent_delete_failure_still_ok(self, store, mock_table):
        mock_table.execute.side_effect = [
            MagicMock(data=[ROW]),
            Exception("delete failed"),
        ]

        assert await store.finalize_sent("3f1c") is StoreOutcome.OK

    @pytest.mark.asyncio
    async def test_increment_tries_compare_and_swap(self, store, mock_table):
        mock_table.execute.side_effect = [
            MagicMock(data=[{**ROW, "tries": 2}]),  # read
            MagicMock(data=[{**ROW, "tries": 3}]),  # conditional update
        ]

        assert await store.increment_tries("3f1c") is StoreOutcome.OK

        assert mock_table.update.call_args[0][0]["tries"] == 3
        mock_table.eq.assert_any_call("tries", 2)

    @pytest.mark.asyncio
    async def test_increment_tries_retries_on_conflict(self, store, mock_table):
        mock_table.execute.side_effect = [
            MagicMock(data=[{**ROW, "tries": 0}]),
            MagicMock(data=[]),  # lost the race
            MagicMock(data=[{**ROW, "tries": 1}]),
            MagicMock(data=[{**ROW, "tries": 2}]),
        ]

        assert await store.increment_tries("3f1c") is StoreOutcome.OK
        assert mock_table.update.call_args[0][0]["tries"] == 2

    @pytest.mark.asyncio
    async def test_increment_tries_not_found(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[])

        assert await store.increment_tries("missing") is StoreOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_create_reminder(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[ROW])

        result = await store.create(
            ReminderCreate(
                subject_id="event_1",
                chat_id="1001",
                fire_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
                offset_minutes=10,
            )
        )

        assert result.id == "3f1c"
        payload = mock_table.insert.call_args[0][0]
        assert payload["fire_at"] == "2026-03-01T12:00:00+00:00"
        assert payload["kind"] == "event"

    @pytest.mark.asyncio
    async def test_parses_trimmed_fractional_seconds(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(
            data=[{**ROW, "fire_at": "2026-03-01T12:00:00.12345+00:00",
                   "created_at": "2026-03-01T11:59:59.5Z"}]
        )

        [record] = await store.list_future(NOW)

        assert record.fire_at == datetime(2026, 3, 1, 12, 0, 0, 123450, tzinfo=timezone.utc)
        assert record.created_at.microsecond == 500000

    @pytest.mark.asyncio
    async def test_slow_query_does_not_block_event_loop(self, store, mock_table):
        async def slow_execute():
            await asyncio.sleep(0.3)
            return MagicMock(data=[ROW])

        mock_table.execute.side_effect = slow_execute
        ticks = []

        async def ticker():
            for _ in range(5):
                ticks.append(asyncio.get_running_loop().time())
                await asyncio.sleep(0.05)

        record, _ = await asyncio.gather(store.get_by_id("3f1c"), ticker())

        assert record.id == "3f1c"
        gaps = [b - a for a, b in zip(ticks, ticks[1:])]
        assert max(gaps) < 0.2

    @pytest.mark.asyncio
    async def test_has_write_access(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[{"write_access_granted": True}])
        assert await store.has_write_access("1001") is True

        mock_table.execute.return_value = MagicMock(data=[])
        assert await store.has_write_access("1001") is False

    @pytest.mark.asyncio
    async def test_get_username(self, store, mock_table):
        mock_table.execute.return_value = MagicMock(data=[{"username": "alice"}])

        assert await store.get_username("1001") == "alice"


def test_missing_credentials_raise_configuration_error():
    with patch("db.supabase_client.settings.supabase_url", None):
        with pytest.raises(ConfigurationError):
            SupabaseReminderStore()


@pytest.mark.asyncio
async def test_async_client_created_once_on_first_query():
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute = AsyncMock(
        return_value=MagicMock(data=[])
    )
    factory = AsyncMock(return_value=mock_client)

    with patch("db.supabase_client.acreate_client", factory):
        store = SupabaseReminderStore()
        assert store.client is None
        await store.get_by_id("a")
        await store.get_by_id("b")

    factory.assert_awaited_once()
    assert store.client is mock_client

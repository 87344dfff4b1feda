"""
Pytest configuration and shared fixtures.
"""

import os

# Settings are instantiated at import time; give them a test environment first.
os.environ.setdefault("BOT_TOKEN", "123456:TEST_TOKEN")
os.environ.setdefault("BOT_USERNAME", "taskboard_bot")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test_key")

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence

import pytest

from db.memory_store import InMemoryReminderStore
from models.reminder import ReminderMessage, ReminderRecord, SendResult
from scheduler.reminders import ReminderScheduler

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ManualTimer:
    def __init__(self, owner: "ManualTimers", run_at, func, args):
        self.owner = owner
        self.run_at = run_at
        self.func = func
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True
        if self in self.owner.pending:
            self.owner.pending.remove(self)


class ManualTimers:
    """Timer backend that only runs callbacks when the test advances time."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.pending: List[ManualTimer] = []
        self.created: List[ManualTimer] = []
        self.started = False

    def call_at(
        self,
        run_at: datetime,
        func: Callable[..., Any],
        args: Sequence[Any] = (),
        name: Optional[str] = None,
    ) -> ManualTimer:
        timer = ManualTimer(self, run_at, func, tuple(args))
        self.pending.append(timer)
        self.created.append(timer)
        return timer

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self.started = False

    async def advance(self, seconds: float) -> None:
        """Move the clock forward and run every timer that became due."""
        self.clock.now = self.clock.now + timedelta(seconds=seconds)
        while True:
            due = sorted(
                (t for t in self.pending if t.run_at <= self.clock.now),
                key=lambda t: t.run_at,
            )
            if not due:
                return
            timer = due[0]
            self.pending.remove(timer)
            timer.fired = True
            await timer.func(*timer.args)


class RecordingNotifier:
    """Notifier that records calls and returns queued results."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.results: List[SendResult] = []
        self.default = SendResult.success(message_id=1)
        self.raises: Optional[Exception] = None
        self.on_send: Optional[Callable[[str], Any]] = None

    async def send(
        self,
        chat_id: str,
        message: ReminderMessage,
        reply_to_message_id: Optional[int] = None,
    ) -> SendResult:
        self.calls.append((chat_id, message, reply_to_message_id))
        if self.on_send is not None:
            await self.on_send(chat_id)
        if self.raises is not None:
            raise self.raises
        if self.results:
            return self.results.pop(0)
        return self.default

    @property
    def chat_ids(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return ManualTimers(clock)


@pytest.fixture
def store():
    return InMemoryReminderStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reminder_scheduler(store, notifier, timers, clock):
    return ReminderScheduler(
        store=store,
        notifier=notifier,
        timers=timers,
        recipients=None,
        clock=clock,
        bot_username="taskboard_bot",
    )


@pytest.fixture
def make_record(clock):
    """Build a reminder record firing ``seconds`` from the fake clock's now."""

    def _make(reminder_id: str, seconds: float, **kwargs) -> ReminderRecord:
        data = {
            "subject_id": "event_1",
            "chat_id": "1001",
            "offset_minutes": 10,
        }
        data.update(kwargs)
        return ReminderRecord(
            id=reminder_id,
            fire_at=clock.now + timedelta(seconds=seconds),
            **data,
        )

    return _make

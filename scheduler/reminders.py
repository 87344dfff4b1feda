"""
Reminder scheduling and delivery.

Turns persisted "fire at time T" reminder records into Telegram messages.
Every pending reminder gets a one-shot timer in this process; when a timer
elapses the reminder is re-read from the store, delivered, and finalized.
After a restart ``initialize`` rebuilds all timers from the store and fires
whatever became overdue while the process was down.
"""

from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from aiogram import Bot

from config import settings
from db import get_reminder_store
from db.base import RecipientDirectory, ReminderStore
from models.reminder import ReminderRecord, SendResult, StoreOutcome
from scheduler.job_table import JobTable, TimerHandle
from scheduler.messages import build_reminder_message
from scheduler.notifier import Notifier, TelegramNotifier, is_permanent_failure
from scheduler.recipients import can_direct_message
from scheduler.timers import APSchedulerTimers, Timers
from utils.datetime_utils import ensure_aware, seconds_until, to_iso_string, utc_now
from utils.exceptions import ReminderStoreError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log")


class FireOutcome(str, Enum):
    """What a single fire attempt did."""

    SENT = "sent"
    FAILED = "failed"  # transient failure, tries incremented
    DROPPED = "dropped"  # permanent failure, finalized without delivery
    SKIPPED = "skipped"  # recipient cannot be messaged, finalized
    STALE = "stale"  # deleted or already handled
    ERROR = "error"  # store error, record left as it was


class _PlannedTimer:
    """JobTable entry for one planned fire; identifies the timer that owns it."""

    def __init__(self):
        self.handle: Optional[TimerHandle] = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


class ReminderScheduler:
    """
    Keeps one live timer per pending reminder and delivers reminders.

    Args:
        store: Persistent reminder store
        notifier: Outbound message channel
        timers: One-shot timer backend
        recipients: Optional directory used to skip recipients the bot may
            not message
        clock: Returns the current aware datetime
        bot_username: Used for the "open" link in reminder keyboards
        snooze_minutes: Minutes offered by the snooze button
        require_write_access: Skip users who never granted write access
        purge_sent_on_start: Delete rows marked sent but left behind by an
            interrupted finalization before loading pending reminders
    """

    def __init__(
        self,
        store: ReminderStore,
        notifier: Notifier,
        timers: Timers,
        recipients: Optional[RecipientDirectory] = None,
        clock: Callable[[], datetime] = utc_now,
        bot_username: str = "",
        snooze_minutes: int = 10,
        require_write_access: bool = True,
        purge_sent_on_start: bool = False,
    ):
        self.store = store
        self.notifier = notifier
        self.timers = timers
        self.recipients = recipients
        self.clock = clock
        self.bot_username = bot_username
        self.snooze_minutes = snooze_minutes
        self.require_write_access = require_write_access
        self.purge_sent_on_start = purge_sent_on_start
        self.jobs = JobTable()
        self.stats: Dict[str, int] = {
            "planned": 0,
            "sent": 0,
            "failed": 0,
            "dropped": 0,
            "skipped": 0,
            "store_errors": 0,
            "errors": 0,
        }

    # ========== Lifecycle ==========

    def start(self) -> None:
        self.timers.start()

    def shutdown(self) -> None:
        cancelled = self.jobs.clear_all()
        self.timers.shutdown()
        logger.info(f"Reminder scheduler stopped, {cancelled} timers cancelled")

    def get_status(self) -> Dict[str, int]:
        return {**self.stats, "scheduled": len(self.jobs)}

    # ========== Planning ==========

    async def initialize(self) -> Dict[str, int]:
        """
        Load pending reminders at process start.

        Overdue reminders are fired right away, oldest first, before timers
        for future reminders are installed.

        Returns:
            Counts of planned and overdue reminders

        Raises:
            ReminderStoreError: If pending reminders cannot be loaded
        """
        now = self.clock()

        if self.purge_sent_on_start:
            purged = await self.store.purge_sent()
            if purged:
                logger.info(f"Purged {purged} reminders left marked as sent")

        future = await self.store.list_future(now)
        overdue = await self.store.list_overdue(now)

        for record in sorted(overdue, key=lambda r: ensure_aware(r.fire_at)):
            await self.fire(record)

        for record in future:
            await self.plan_one(record)

        logger.info(
            f"Reminder init done. planned: {len(future)}, overdue fired: {len(overdue)}"
        )
        return {"planned": len(future), "overdue_fired": len(overdue)}

    async def plan_one(self, record: ReminderRecord) -> None:
        """
        (Re)schedule one reminder.

        Any earlier timer for the same id is cancelled first. A reminder that
        is already due is fired immediately instead of getting a timer. The
        record may be a stale snapshot; only ``fire_at`` is used here.
        """
        self.jobs.clear(record.id)

        fire_at = ensure_aware(record.fire_at)
        if seconds_until(fire_at, self.clock()) <= 0:
            await self.fire(record)
            return

        planned = _PlannedTimer()
        planned.handle = self.timers.call_at(
            fire_at, self.fire, args=(record, planned), name=f"reminder:{record.id}"
        )
        self.jobs.set(record.id, planned)
        self.stats["planned"] += 1
        logger.info(
            f"Scheduled reminder {record.id} at {to_iso_string(fire_at)} for {record.chat_id}"
        )

    async def reschedule_for_entity(self, subject_id: str) -> int:
        """Re-plan every unsent reminder of one task or event."""
        records = await self.store.list_by_subject(str(subject_id))
        for record in records:
            await self.plan_one(record)
        return len(records)

    def unplan(self, reminder_id: str) -> bool:
        """Drop the timer of a reminder that an owning feature deleted."""
        return self.jobs.clear(reminder_id)

    # ========== Delivery ==========

    async def fire(
        self, record: ReminderRecord, planned: Optional[_PlannedTimer] = None
    ) -> FireOutcome:
        """
        Deliver one reminder. Never raises.

        Args:
            record: Possibly stale snapshot; only its id is trusted
            planned: The timer that triggered this fire, if any
        """
        try:
            return await self._deliver(record)
        except ReminderStoreError as e:
            self.stats["store_errors"] += 1
            logger.error(f"Store error while firing reminder {record.id}: {e}", exc_info=True)
            return FireOutcome.ERROR
        except Exception as e:
            self.stats["errors"] += 1
            logger.error(f"Unexpected error firing reminder {record.id}: {e}", exc_info=True)
            return FireOutcome.ERROR
        finally:
            # The job is done whatever happened; keep a replacement timer
            # that plan_one may have installed meanwhile.
            if planned is not None:
                self.jobs.clear(record.id, only=planned)

    async def _deliver(self, record: ReminderRecord) -> FireOutcome:
        fresh = await self.store.get_by_id(record.id)
        if fresh is None or fresh.sent_at is not None:
            logger.debug(f"Reminder {record.id} already handled or deleted")
            return FireOutcome.STALE

        if self.recipients is not None and not await can_direct_message(
            self.recipients, fresh.chat_id, self.require_write_access
        ):
            outcome = await self.store.finalize_sent(fresh.id)
            self.stats["skipped"] += 1
            logger.info(
                f"Skip reminder {fresh.id} (cannot DM {fresh.chat_id}): {outcome.value}"
            )
            return FireOutcome.SKIPPED

        message = build_reminder_message(fresh, self.bot_username, self.snooze_minutes)
        try:
            result = await self.notifier.send(
                fresh.chat_id, message, fresh.reply_to_message_id
            )
        except Exception as e:
            logger.error(f"Notifier raised for reminder {fresh.id}: {e}", exc_info=True)
            result = SendResult.failure("exception", str(e))

        if result.ok:
            outcome = await self.store.finalize_sent(fresh.id)
            self.stats["sent"] += 1
            if outcome is StoreOutcome.OK:
                logger.info(f"Sent reminder {fresh.id} to {fresh.chat_id}")
            else:
                logger.warning(
                    f"Sent reminder {fresh.id} but finalize returned {outcome.value}"
                )
            return FireOutcome.SENT

        if is_permanent_failure(result):
            await self.store.finalize_sent(fresh.id)
            self.stats["dropped"] += 1
            logger.warning(
                f"Dropped reminder {fresh.id} for {fresh.chat_id}: {result.code} {result.description}"
            )
            return FireOutcome.DROPPED

        await self.store.increment_tries(fresh.id)
        self.stats["failed"] += 1
        logger.warning(
            f"Send failed for reminder {fresh.id} (try {fresh.tries + 1}): "
            f"{result.code} {result.description}"
        )
        return FireOutcome.FAILED


def create_scheduler(
    bot: Bot,
    store: Optional[ReminderStore] = None,
    timers: Optional[Timers] = None,
) -> ReminderScheduler:
    """Wire a scheduler from settings."""
    store = store or get_reminder_store()
    return ReminderScheduler(
        store=store,
        notifier=TelegramNotifier(bot, timeout_seconds=settings.notifier_timeout_seconds),
        timers=timers or APSchedulerTimers(),
        recipients=store,
        bot_username=settings.bot_username,
        snooze_minutes=settings.snooze_minutes,
        require_write_access=settings.require_write_access,
        purge_sent_on_start=not settings.retain_sent_reminders,
    )


async def setup_scheduler(
    bot: Bot,
    store: Optional[ReminderStore] = None,
    timers: Optional[Timers] = None,
) -> ReminderScheduler:
    """
    Start timers and load pending reminders.

    Raises:
        ReminderStoreError: If the initial load fails; timers are stopped
    """
    scheduler = create_scheduler(bot, store=store, timers=timers)
    scheduler.start()
    try:
        await scheduler.initialize()
    except Exception:
        scheduler.shutdown()
        raise
    return scheduler

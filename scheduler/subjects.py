"""
Hooks for the features that own reminders (events and tasks).

These change the persisted reminder set and then tell the scheduler, the
way the event and task routes do after their own writes.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional

from models.reminder import ReminderCreate, ReminderKind, ReminderRecord
from utils.datetime_utils import ensure_aware
from utils.exceptions import ReminderStoreError, ValidationError
from utils.logging_config import setup_logging

if TYPE_CHECKING:
    from scheduler.reminders import ReminderScheduler

logger = setup_logging(name=__name__, log_file="scheduler.log")

MAX_SNOOZE_MINUTES = 24 * 60


async def recompute_event_reminders(
    scheduler: "ReminderScheduler", event_id: str, new_start_at: datetime
) -> int:
    """
    Move an event's pending reminders after the event start changed.

    Each reminder fires ``offset_minutes`` before the new start. Reminders
    without an offset (snoozes) keep their time.

    The store has no multi-row transaction, so every reminder is updated
    on its own. A failed update does not stop the others; timers are
    re-planned from whatever was stored and the failures are raised after.

    Returns:
        Number of reminders re-planned

    Raises:
        ReminderStoreError: If some fire times could not be updated
    """
    start = ensure_aware(new_start_at)
    failed: List[str] = []
    for record in await scheduler.store.list_by_subject(str(event_id)):
        if record.offset_minutes is None:
            continue
        try:
            await scheduler.store.update_fire_at(
                record.id, start - timedelta(minutes=record.offset_minutes)
            )
        except ReminderStoreError as e:
            logger.error(f"Failed to move reminder {record.id} of event {event_id}: {e}")
            failed.append(record.id)

    planned = await scheduler.reschedule_for_entity(str(event_id))
    logger.info(f"Rescheduled {planned} reminders for event {event_id}")

    if failed:
        raise ReminderStoreError(
            f"Could not move reminders {', '.join(failed)} of event {event_id}"
        )
    return planned


async def snooze_reminder(
    scheduler: "ReminderScheduler",
    kind: str,
    subject_id: str,
    chat_id: str,
    minutes: int,
    reply_to_message_id: Optional[int] = None,
) -> ReminderRecord:
    """
    Create a one-off reminder ``minutes`` from now and plan it.

    Raises:
        ValidationError: If minutes is out of range
        ReminderStoreError: If the reminder cannot be stored
    """
    if minutes <= 0 or minutes > MAX_SNOOZE_MINUTES:
        raise ValidationError(f"Snooze must be between 1 and {MAX_SNOOZE_MINUTES} minutes")

    record = await scheduler.store.create(
        ReminderCreate(
            subject_id=str(subject_id),
            chat_id=str(chat_id),
            fire_at=scheduler.clock() + timedelta(minutes=minutes),
            kind=ReminderKind(kind),
            reply_to_message_id=reply_to_message_id,
            created_by=str(chat_id),
        )
    )
    await scheduler.plan_one(record)
    return record


async def delete_reminder(scheduler: "ReminderScheduler", reminder_id: str) -> bool:
    """Delete a reminder and drop its timer."""
    deleted = await scheduler.store.delete(reminder_id)
    scheduler.unplan(reminder_id)
    return deleted

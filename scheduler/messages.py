"""Reminder message text."""

from bot.keyboards import get_reminder_keyboard
from models.reminder import ReminderKind, ReminderMessage, ReminderRecord


def _minutes(n: int) -> str:
    return "1 minute" if n == 1 else f"{n} minutes"


def build_reminder_text(record: ReminderRecord) -> str:
    if record.kind == ReminderKind.TASK.value:
        return "🔔 Reminder about your task."

    if record.offset_minutes is None:
        return "🔔 Reminder about the event."
    if record.offset_minutes == 0:
        return "🔔 Reminder: the event is starting now."
    return f"🔔 Reminder: the event starts in {_minutes(record.offset_minutes)}."


def build_reminder_message(
    record: ReminderRecord, bot_username: str = "", snooze_minutes: int = 10
) -> ReminderMessage:
    """Build the outbound message from a fresh reminder record."""
    return ReminderMessage(
        text=build_reminder_text(record),
        reply_markup=get_reminder_keyboard(
            kind=record.kind,
            subject_id=record.subject_id,
            bot_username=bot_username,
            snooze_minutes=snooze_minutes,
        ),
    )

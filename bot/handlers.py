"""
Bot handlers for reminder messages.
Handles the snooze button attached to every delivered reminder.
"""

import logging
from typing import TYPE_CHECKING

from aiogram import Router
from aiogram.types import CallbackQuery

from bot.keyboards import SNOOZE_PREFIX, parse_snooze_callback
from scheduler.subjects import snooze_reminder
from utils.exceptions import DatabaseError, ValidationError

if TYPE_CHECKING:
    from scheduler.reminders import ReminderScheduler

logger = logging.getLogger(__name__)

router = Router()


# ========== Snooze ==========


@router.callback_query(lambda c: (c.data or "").startswith(f"{SNOOZE_PREFIX}:"))
async def handle_snooze(callback: CallbackQuery, reminder_scheduler: "ReminderScheduler"):
    """Create a new reminder a few minutes from now for the same subject."""
    parsed = parse_snooze_callback(callback.data)
    if parsed is None:
        await callback.answer("Invalid reminder", show_alert=True)
        return

    kind, subject_id, minutes = parsed
    reply_to = callback.message.message_id if callback.message else None

    try:
        record = await snooze_reminder(
            reminder_scheduler,
            kind=kind,
            subject_id=subject_id,
            chat_id=str(callback.from_user.id),
            minutes=minutes,
            reply_to_message_id=reply_to,
        )
    except ValidationError as e:
        await callback.answer(f"❌ {e}", show_alert=True)
        return
    except DatabaseError as e:
        logger.error(f"Failed to snooze reminder for {subject_id}: {e}", exc_info=True)
        await callback.answer("❌ Could not snooze, please try again.", show_alert=True)
        return

    logger.info(
        f"Snoozed {kind} {subject_id} for {callback.from_user.id}: reminder {record.id}"
    )
    await callback.answer(f"⏰ Snoozed for {minutes} min")


def register_handlers(dp) -> None:
    """Register all handlers with dispatcher."""
    dp.include_router(router)

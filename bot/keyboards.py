"""
Inline keyboards attached to reminder messages.
"""

from typing import Optional, Tuple

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from models.reminder import ReminderKind

SNOOZE_PREFIX = "rsnooze"
MAX_CALLBACK_DATA_BYTES = 64  # Telegram limit


def build_open_link(bot_username: str, subject_id: str) -> str:
    """Deep link that opens the task or event in the webapp."""
    return f"https://t.me/{bot_username}?startapp=task_{subject_id}"


def build_snooze_callback(kind: str, subject_id: str, minutes: int) -> Optional[str]:
    """Callback data for the snooze button, or None if it would not fit."""
    data = f"{SNOOZE_PREFIX}:{kind}:{subject_id}:{minutes}"
    if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
        return None
    return data


def parse_snooze_callback(data: Optional[str]) -> Optional[Tuple[str, str, int]]:
    """
    Parse snooze callback data.

    Returns:
        (kind, subject_id, minutes) or None if data is not a valid snooze
    """
    if not data:
        return None
    parts = data.split(":")
    if len(parts) != 4 or parts[0] != SNOOZE_PREFIX:
        return None
    _, kind, subject_id, minutes = parts
    if kind not in {k.value for k in ReminderKind} or not subject_id:
        return None
    if not minutes.isdigit() or int(minutes) <= 0:
        return None
    return kind, subject_id, int(minutes)


def get_reminder_keyboard(
    kind: str,
    subject_id: str,
    bot_username: str,
    snooze_minutes: int,
) -> Optional[InlineKeyboardMarkup]:
    """Get the keyboard shown under a reminder: open link and snooze."""
    buttons = []

    if bot_username:
        text = "📅 Open event" if kind == ReminderKind.EVENT.value else "📋 Open task"
        buttons.append(
            InlineKeyboardButton(text=text, url=build_open_link(bot_username, subject_id))
        )

    snooze_data = build_snooze_callback(kind, subject_id, snooze_minutes)
    if snooze_data and snooze_minutes > 0:
        buttons.append(
            InlineKeyboardButton(
                text=f"⏰ Snooze {snooze_minutes} min", callback_data=snooze_data
            )
        )

    if not buttons:
        return None

    builder = InlineKeyboardBuilder()
    builder.row(*buttons)
    return builder.as_markup()

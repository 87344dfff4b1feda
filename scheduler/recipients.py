"""Decides whether a reminder may be delivered as a direct message."""

import re

from db.base import RecipientDirectory

_NUMERIC_CHAT_ID = re.compile(r"^\d+$")


async def can_direct_message(
    directory: RecipientDirectory, chat_id: str, require_write_access: bool = True
) -> bool:
    """
    Check a recipient before sending.

    Only positive numeric chat IDs (private chats) qualify; bot accounts are
    skipped, and users must have granted the bot write access.

    Raises:
        ReminderStoreError: If the directory lookup fails
    """
    chat_id = str(chat_id or "")
    if not _NUMERIC_CHAT_ID.match(chat_id):
        return False

    username = await directory.get_username(chat_id)
    if username and username.lower().endswith("bot"):
        return False

    if require_write_access and not await directory.has_write_access(chat_id):
        return False

    return True

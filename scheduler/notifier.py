"""
Outbound notification channel.

``TelegramNotifier`` reports ordinary delivery failures as a ``SendResult``
with a machine-readable code instead of raising; only malformed input
raises ``NotifierError``.
"""

import asyncio
import re
from typing import Optional, Protocol

from aiogram import Bot
from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramNetworkError,
    TelegramRetryAfter,
    TelegramServerError,
)
from aiogram.types import LinkPreviewOptions, ReplyParameters

from models.reminder import ReminderMessage, SendResult
from utils.exceptions import NotifierError

# Failure codes
FORBIDDEN = "forbidden"
CHAT_NOT_FOUND = "chat_not_found"
BAD_REQUEST = "bad_request"
RETRY_AFTER = "retry_after"
NETWORK = "network"
SERVER_ERROR = "server_error"
TIMEOUT = "timeout"
API_ERROR = "api_error"

# The recipient cannot be reached no matter how often we retry
PERMANENT_CODES = frozenset({FORBIDDEN, CHAT_NOT_FOUND})

_PERMANENT_DESCRIPTION_RE = re.compile(
    r"chat not found|bots can'?t send messages to bots|bot was blocked by the user",
    re.IGNORECASE,
)


def is_permanent_failure(result: SendResult) -> bool:
    """True if a failed send should be treated as handled, not retried."""
    if result.ok:
        return False
    if result.code in PERMANENT_CODES:
        return True
    return bool(result.description and _PERMANENT_DESCRIPTION_RE.search(result.description))


class Notifier(Protocol):
    async def send(
        self,
        chat_id: str,
        message: ReminderMessage,
        reply_to_message_id: Optional[int] = None,
    ) -> SendResult:
        ...


class TelegramNotifier:
    """Sends reminder messages through the Telegram Bot API."""

    def __init__(self, bot: Bot, timeout_seconds: int = 15):
        self.bot = bot
        self.timeout_seconds = timeout_seconds

    async def send(
        self,
        chat_id: str,
        message: ReminderMessage,
        reply_to_message_id: Optional[int] = None,
    ) -> SendResult:
        """
        Send one message.

        Args:
            chat_id: Telegram chat ID
            message: Text and optional inline keyboard
            reply_to_message_id: Message to thread the reminder under

        Returns:
            SendResult with ``ok`` and, on failure, a failure code

        Raises:
            NotifierError: If chat_id or text is empty
        """
        if not str(chat_id or "").strip():
            raise NotifierError("chat_id is required")
        if not message.text:
            raise NotifierError("message text is required")

        reply_parameters = None
        if reply_to_message_id:
            reply_parameters = ReplyParameters(
                message_id=reply_to_message_id,
                allow_sending_without_reply=True,
            )

        try:
            sent = await self.bot.send_message(
                chat_id=chat_id,
                text=message.text,
                reply_markup=message.reply_markup,
                reply_parameters=reply_parameters,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
                request_timeout=self.timeout_seconds,
            )
        except TelegramRetryAfter as e:
            return SendResult.failure(RETRY_AFTER, e.message)
        except TelegramForbiddenError as e:
            return SendResult.failure(FORBIDDEN, e.message)
        except TelegramBadRequest as e:
            code = CHAT_NOT_FOUND if "chat not found" in e.message.lower() else BAD_REQUEST
            return SendResult.failure(code, e.message)
        except TelegramNetworkError as e:
            return SendResult.failure(NETWORK, e.message)
        except TelegramServerError as e:
            return SendResult.failure(SERVER_ERROR, e.message)
        except TelegramAPIError as e:
            return SendResult.failure(API_ERROR, e.message)
        except asyncio.TimeoutError:
            return SendResult.failure(TIMEOUT, "request timed out")

        return SendResult.success(message_id=sent.message_id)

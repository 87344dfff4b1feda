"""Telegram bot handlers and keyboards for reminders."""

from .handlers import register_handlers

__all__ = ["register_handlers"]

"""
Main entry point for the task board reminder bot.
Loads pending reminders, then serves Telegram updates via polling or webhook.
"""

import asyncio
import sys
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application
from aiohttp import web

from bot import register_handlers
from config import settings
from scheduler import ReminderScheduler, setup_scheduler
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="bot.log")

WEBHOOK_PATH = "/webhook/telegram"


async def run_webhook(bot: Bot, dp: Dispatcher) -> None:
    """Serve updates over HTTPS webhook (production)."""
    app = web.Application()
    SimpleRequestHandler(dispatcher=dp, bot=bot).register(app, path=WEBHOOK_PATH)
    setup_application(app, dp, bot=bot)

    webhook_url = f"{settings.bot_webhook_url.rstrip('/')}{WEBHOOK_PATH}"
    await bot.set_webhook(url=webhook_url, allowed_updates=dp.resolve_used_update_types())
    logger.info(f"Webhook configured: {webhook_url}")

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=settings.host, port=settings.port)
    await site.start()
    logger.info(f"Webhook server listening on {settings.host}:{settings.port}")
    try:
        await asyncio.Event().wait()
    finally:
        await bot.delete_webhook()
        await runner.cleanup()


async def main() -> None:
    """Main async function to run the bot."""
    try:
        settings.validate_all_required()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher(storage=MemoryStorage())
    reminder_scheduler: Optional[ReminderScheduler] = None

    try:
        logger.info("Starting reminder bot...")

        # Without a valid inventory of pending reminders there is nothing to
        # guarantee, so a failed load aborts startup.
        reminder_scheduler = await setup_scheduler(bot)
        dp["reminder_scheduler"] = reminder_scheduler

        register_handlers(dp)
        logger.info("Handlers registered")

        if settings.bot_webhook_url:
            await run_webhook(bot, dp)
        else:
            logger.info("Bot is running in polling mode. Press Ctrl+C to stop.")
            await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())

    except asyncio.CancelledError:
        logger.info("Bot cancelled")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shutting down...")
        if reminder_scheduler is not None:
            reminder_scheduler.shutdown()

        try:
            await bot.session.close()
            logger.info("Bot session closed")
        except Exception as e:
            logger.error(f"Error closing bot session: {e}", exc_info=True)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)

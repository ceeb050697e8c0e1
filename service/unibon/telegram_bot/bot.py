"""
Telegram bot runtime.

Two ways updates reach the dispatcher:
- run_polling(): long-polls getUpdates (default mode)
- handle_telegram_update(): one update dict from the webhook endpoint

Each message is handled in its own task so a slow or failing handler
never blocks or kills the poll loop. Shutdown lets in-flight handlers
finish (up to a timeout) before the Bot is closed.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from telegram import Bot, Message, Update
from telegram.error import TelegramError

from unibon.config import get_settings
from unibon.database import SessionLocal
from .dispatcher import dispatch
from .handlers import BotContext
from .logging_config import bot_logger as logger
from .telegram_api import BOT_COMMANDS, build_bot

MessageHandler = Callable[[Message], Awaitable[object]]

# Global bot context (initialized once)
_context: Optional[BotContext] = None
_polling_task: Optional[asyncio.Task] = None
_stop_event: Optional[asyncio.Event] = None

# Strong references to in-flight handler tasks
_pending_tasks: set[asyncio.Task] = set()


def get_bot_context() -> BotContext:
    """Get or create the bot context."""
    global _context

    if _context is None:
        settings = get_settings()
        _context = BotContext(
            telegram=build_bot(settings.telegram_bot_token, settings.telegram_poll_timeout),
            session_factory=SessionLocal,
        )
        logger.info("Telegram bot context initialized")

    return _context


async def _run_handler(handler: MessageHandler, message: Message) -> None:
    try:
        await handler(message)
    except Exception as e:
        logger.error(f"Handler error for chat_id={message.chat_id}: {e}", exc_info=True)


def _track(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _pending_tasks.add(task)
    task.add_done_callback(_pending_tasks.discard)
    return task


def _spawn(handler: MessageHandler, message: Message) -> asyncio.Task:
    return _track(_run_handler(handler, message))


async def _sleep_unless_stopped(stop_event: asyncio.Event, delay: float) -> None:
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


async def run_polling(
    bot: Bot,
    handler: MessageHandler,
    stop_event: asyncio.Event,
    timeout: int = 30,
    retry_delay: float = 5.0,
) -> None:
    """
    Long-poll getUpdates until stop_event is set.

    The offset always moves past the highest update_id seen, so each
    update is requested once; after a polling error the loop waits
    retry_delay seconds and tries again, forever.
    """
    offset = 0

    try:
        await bot.set_my_commands(BOT_COMMANDS)
    except Exception as e:
        logger.warning(f"Failed to register bot commands: {e}")

    logger.info("Bot started polling")

    while not stop_event.is_set():
        try:
            updates = await bot.get_updates(offset=offset, timeout=timeout, allowed_updates=["message"])
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Polling error: {e}")
            await _sleep_unless_stopped(stop_event, retry_delay)
            continue

        for update in updates:
            offset = max(offset, update.update_id + 1)
            if update.message:
                _spawn(handler, update.message)

    logger.info("Bot stopped polling")


async def handle_telegram_update(update_data: dict) -> None:
    """
    Process one webhook update from Telegram.

    Called by the FastAPI webhook endpoint in the background.
    """
    ctx = get_bot_context()
    try:
        update = Update.de_json(update_data, ctx.telegram)
    except Exception as e:
        logger.warning(f"Received invalid update data: {e}")
        return

    if update is None or update.message is None:
        return

    await _run_handler(lambda message: dispatch(ctx, message), update.message)


def schedule_telegram_update(update_data: dict) -> asyncio.Task:
    """Handle a webhook update in the background, tracked like polled messages."""
    return _track(handle_telegram_update(update_data))


async def start_bot() -> bool:
    """
    Start the poll loop in the background (call on startup).

    Initializes the Bot in polling and webhook mode. Returns False when
    no poll loop was started (no token, disabled, webhook mode, or the
    token was rejected).
    """
    global _polling_task, _stop_event

    settings = get_settings()
    if not settings.telegram_bot_token:
        logger.error("TELEGRAM_BOT_TOKEN not set, bot disabled")
        return False

    if settings.telegram_mode == "disabled":
        logger.info("TELEGRAM_MODE=disabled, bot disabled")
        return False

    ctx = get_bot_context()
    try:
        await ctx.telegram.initialize()
    except TelegramError as e:
        logger.error(f"Telegram bot initialization failed: {e}")
        return False

    if settings.telegram_mode != "polling":
        logger.info(f"Telegram mode is '{settings.telegram_mode}', updates arrive via webhook")
        return False

    _stop_event = asyncio.Event()
    _polling_task = asyncio.create_task(
        run_polling(
            ctx.telegram,
            lambda message: dispatch(ctx, message),
            _stop_event,
            timeout=settings.telegram_poll_timeout,
            retry_delay=settings.telegram_retry_delay,
        )
    )
    return True


async def _drain_handlers(timeout: float) -> None:
    """Wait for in-flight handlers; cancel whatever is still running after timeout."""
    if not _pending_tasks:
        return

    logger.info(f"Waiting for {len(_pending_tasks)} running handler(s)")
    _, still_running = await asyncio.wait(set(_pending_tasks), timeout=timeout)
    if not still_running:
        return

    logger.warning(f"Cancelling {len(still_running)} handler(s) still running after {timeout}s")
    for task in still_running:
        task.cancel()
    await asyncio.wait(still_running)


async def shutdown_bot(drain_timeout: Optional[float] = None) -> None:
    """Stop polling, let running handlers finish, then close the Bot (call on shutdown)."""
    global _context, _polling_task, _stop_event

    if _stop_event is not None:
        _stop_event.set()
    if _polling_task is not None:
        # A pending getUpdates can block for the whole poll timeout
        _polling_task.cancel()
        try:
            await _polling_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Poll loop exited with error: {e}", exc_info=True)
        _polling_task = None

    if drain_timeout is None:
        drain_timeout = get_settings().telegram_shutdown_timeout
    await _drain_handlers(drain_timeout)

    if _context is not None:
        await _context.telegram.shutdown()
        _context = None
        logger.info("Bot shut down")

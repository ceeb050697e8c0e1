"""
Telegram bot for UniBon.

ARCHITECTURE: thin routing layer over the receipt services.
- Receives updates by long polling (or webhook) through python-telegram-bot's Bot
- Maps chat id -> account, provisioning one on first contact
- Routes each message through the ordered route table in dispatcher.py
- Handlers call the extraction and receipt services directly

Business logic stays in app services:
- services/extraction.py - model call + result parsing
- services/receipts.py - receipt storage and statistics
"""

from .bot import handle_telegram_update, schedule_telegram_update, run_polling, start_bot, shutdown_bot
from .auth import find_chat_session, get_or_create_chat_session, set_api_key, get_api_key
from .dispatcher import dispatch, classify_message, ROUTES
from .handlers import BotContext
from .telegram_api import BOT_COMMANDS, build_bot

__all__ = [
    "handle_telegram_update",
    "schedule_telegram_update",
    "run_polling",
    "start_bot",
    "shutdown_bot",
    "find_chat_session",
    "get_or_create_chat_session",
    "set_api_key",
    "get_api_key",
    "dispatch",
    "classify_message",
    "ROUTES",
    "BotContext",
    "BOT_COMMANDS",
    "build_bot",
]

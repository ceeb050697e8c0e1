"""
Telegram Bot API access.

All calls go through python-telegram-bot's Bot; this module builds it
and holds the command menu shown by Telegram clients.
"""

from telegram import Bot, BotCommand
from telegram.request import HTTPXRequest

BOT_COMMANDS = [
    BotCommand("start", "Get started"),
    BotCommand("setkey", "Set your OpenAI API key"),
    BotCommand("stats", "Spending statistics"),
    BotCommand("history", "Recent receipts"),
    BotCommand("help", "Help"),
]


def build_bot(token: str, poll_timeout: int = 30) -> Bot:
    """
    Create the Bot for a token.

    getUpdates gets its own connection so a pending long poll never
    holds up replies.
    """
    return Bot(
        token=token,
        get_updates_request=HTTPXRequest(read_timeout=poll_timeout + 10),
    )

"""
Message dispatcher - routes an incoming message to exactly one handler.

Routes are tried top to bottom and the first match wins. Order matters
because the command prefixes overlap (/start vs /stats, /receipt_<id> vs
the unknown-command fallback):

1. Fixed commands, matched by prefix so "/setkey KEY" or "/start@bot" work
2. /receipt_<hex id prefix> (underscore optional)
3. Photo
4. Any other non-empty text that is not a command -> expense description
5. Any other "/..." text -> unknown command
6. Nothing matched -> no reply
"""

import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from telegram import Message

from . import handlers
from .handlers import BotContext
from .logging_config import bot_logger as logger

# A matcher returns the extra handler arguments on a match, None otherwise
Matcher = Callable[[Message], Optional[tuple]]
Handler = Callable[..., Awaitable[None]]

RECEIPT_DETAIL_PATTERN = re.compile(r"^/receipt_?([a-f0-9]+)", re.IGNORECASE)


@dataclass(frozen=True)
class Route:
    name: str
    matcher: Matcher
    handler: Handler


def command(prefix: str) -> Matcher:
    def match(message: Message) -> Optional[tuple]:
        return () if (message.text or "").startswith(prefix) else None
    return match


def match_receipt_detail(message: Message) -> Optional[tuple]:
    found = RECEIPT_DETAIL_PATTERN.match(message.text or "")
    return (found.group(1),) if found else None


def match_photo(message: Message) -> Optional[tuple]:
    return () if message.photo else None


def match_free_text(message: Message) -> Optional[tuple]:
    text = message.text or ""
    return () if text.strip() and not text.startswith("/") else None


def match_unknown_command(message: Message) -> Optional[tuple]:
    return () if (message.text or "").startswith("/") else None


ROUTES: tuple[Route, ...] = (
    Route("start", command("/start"), handlers.handle_start),
    Route("setkey", command("/setkey"), handlers.handle_set_key),
    Route("stats", command("/stats"), handlers.handle_stats),
    Route("history", command("/history"), handlers.handle_history),
    Route("delete", command("/delete"), handlers.handle_delete),
    Route("help", command("/help"), handlers.handle_help),
    Route("receipt", match_receipt_detail, handlers.handle_receipt_detail),
    Route("photo", match_photo, handlers.handle_photo),
    Route("text", match_free_text, handlers.handle_text_receipt),
    Route("unknown", match_unknown_command, handlers.handle_unknown_command),
)


def classify_message(message: Message, routes: tuple[Route, ...] = ROUTES) -> Optional[tuple[Route, tuple]]:
    """
    Pick the route for a message.

    Returns:
        (route, handler args) for the first matching route, or None
    """
    for route in routes:
        args = route.matcher(message)
        if args is not None:
            return route, args
    return None


async def dispatch(ctx: BotContext, message: Message, routes: tuple[Route, ...] = ROUTES) -> Optional[str]:
    """
    Run the handler for a message.

    Returns:
        Name of the route that handled it, None when the message was ignored
    """
    classified = classify_message(message, routes)
    if classified is None:
        logger.debug(f"Ignoring message_id={message.message_id} from chat_id={message.chat_id}")
        return None

    route, args = classified
    logger.info(f"Message from chat_id={message.chat_id} routed to {route.name}")
    await route.handler(ctx, message, *args)
    return route.name

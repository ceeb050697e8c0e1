"""
Telegram command and message handlers.

Every handler has the signature handler(ctx, message, *args) and talks
back to the chat itself through ctx.telegram (a telegram.Bot). Which
handler runs for a message is decided by the route table in dispatcher.py.

Preconditions:
- /stats, /history, /receipt_<id>, /delete need an existing chat session
  (created by /start, /setkey or the first photo/text).
- Photo and text analysis need the chat's own API key (/setkey).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session
from telegram import Message, PhotoSize
from telegram.constants import ChatAction, ParseMode

from unibon.services import extraction
from unibon.services.extraction import (
    ExtractionDomainError,
    ExtractionParseFailure,
    build_data_uri,
    parse_analysis,
)
from unibon.services.receipts import (
    create_receipt_for_account,
    delete_receipt,
    find_receipt_by_prefix,
    list_receipts_for_account,
    short_id,
    stats_for_account,
    unlink_receipt,
)
from .auth import find_chat_session, get_or_create_chat_session, set_api_key
from .formatting import escape, format_history, format_receipt, format_saved_receipt, format_stats
from .logging_config import bot_logger as logger

HISTORY_LIMIT = 10

REGISTER_FIRST = "⚠️ Please register first with /start."
SET_KEY_FIRST = "⚠️ Please set your OpenAI API key first:\n/setkey YOUR_API_KEY"
PARSE_ERROR = "❌ The AI returned a result that could not be parsed. Please try again."


@dataclass
class BotContext:
    """
    Collaborators shared by all handlers.

    telegram: telegram.Bot (or anything with the same coroutines)
    session_factory: returns a new SQLAlchemy Session
    extractor: object exposing analyze_receipt_image/analyze_receipt_text
    """
    telegram: Any
    session_factory: Callable[[], Session]
    extractor: Any = field(default=extraction)


def sender_name(message: Message) -> str:
    user = message.from_user
    if user is None:
        return "User"
    return " ".join(p for p in (user.first_name, user.last_name) if p) or "User"


def largest_photo(message: Message) -> Optional[PhotoSize]:
    """Highest-resolution variant (Telegram lists them small to large)."""
    if not message.photo:
        return None
    return max(enumerate(message.photo), key=lambda p: (p[1].width * p[1].height, p[0]))[1]


async def _reply(ctx: BotContext, chat_id: int, text: str) -> None:
    await ctx.telegram.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.HTML)


async def handle_start(ctx: BotContext, message: Message) -> None:
    name = sender_name(message)
    with ctx.session_factory() as db:
        get_or_create_chat_session(db, str(message.chat_id), name)

    await _reply(
        ctx,
        message.chat_id,
        f"👋 Hi <b>{escape(name)}</b>! Welcome to UniBon, your receipt assistant.\n\n"
        "📋 <b>Getting started:</b>\n"
        "1️⃣ Set your OpenAI API key:\n"
        "   /setkey YOUR_API_KEY\n\n"
        "2️⃣ Then send a photo of a receipt or describe an expense in text\n\n"
        "📌 <b>Commands:</b>\n"
        "/setkey - set or update your API key\n"
        "/stats - spending statistics\n"
        "/history - recent receipts\n"
        "/help - help"
    )


async def handle_set_key(ctx: BotContext, message: Message) -> None:
    parts = (message.text or "").split()
    if len(parts) < 2:
        await _reply(
            ctx,
            message.chat_id,
            "⚠️ Please provide your API key:\n<code>/setkey YOUR_API_KEY</code>"
        )
        return

    chat_id = str(message.chat_id)
    with ctx.session_factory() as db:
        get_or_create_chat_session(db, chat_id, sender_name(message))
        set_api_key(db, chat_id, parts[1])

    logger.info(f"API key updated for chat_id={chat_id}")
    await _reply(
        ctx,
        message.chat_id,
        "✅ API key saved! You can now send receipt photos or text to analyze."
    )


async def handle_stats(ctx: BotContext, message: Message) -> None:
    with ctx.session_factory() as db:
        session = find_chat_session(db, str(message.chat_id))
        if session is None:
            stats = None
        else:
            stats = stats_for_account(db, session.user_id)

    if stats is None:
        await _reply(ctx, message.chat_id, REGISTER_FIRST)
        return

    await _reply(ctx, message.chat_id, format_stats(stats))


async def handle_history(ctx: BotContext, message: Message) -> None:
    with ctx.session_factory() as db:
        session = find_chat_session(db, str(message.chat_id))
        receipts = None if session is None else list_receipts_for_account(db, session.user_id)

    if receipts is None:
        await _reply(ctx, message.chat_id, REGISTER_FIRST)
        return

    if not receipts:
        await _reply(ctx, message.chat_id, "📭 No receipts yet. Send a receipt photo to get started!")
        return

    await _reply(ctx, message.chat_id, format_history(receipts[:HISTORY_LIMIT]))


async def handle_receipt_detail(ctx: BotContext, message: Message, id_prefix: str) -> None:
    with ctx.session_factory() as db:
        session = find_chat_session(db, str(message.chat_id))
        if session is None:
            await _reply(ctx, message.chat_id, REGISTER_FIRST)
            return
        receipt = find_receipt_by_prefix(db, session.user_id, id_prefix)

    if receipt is None:
        await _reply(ctx, message.chat_id, "❌ Receipt not found. Use /history to list your receipts.")
        return

    await _reply(ctx, message.chat_id, format_receipt(receipt))


async def handle_delete(ctx: BotContext, message: Message) -> None:
    with ctx.session_factory() as db:
        session = find_chat_session(db, str(message.chat_id))
        if session is None:
            await _reply(ctx, message.chat_id, REGISTER_FIRST)
            return

        parts = (message.text or "").split()
        if len(parts) < 2:
            await _reply(
                ctx,
                message.chat_id,
                "⚠️ Please provide the receipt ID:\n<code>/delete FIRST_8_CHARS_OF_ID</code>"
            )
            return

        receipt = find_receipt_by_prefix(db, session.user_id, parts[1])
        if receipt is None:
            await _reply(ctx, message.chat_id, "❌ Receipt not found.")
            return

        # Drop the link before the receipt so it never points at a deleted row
        unlink_receipt(db, session.user_id, receipt.id)
        delete_receipt(db, receipt.id)

    logger.info(f"Deleted receipt {short_id(receipt.id)} for chat_id={message.chat_id}")
    await _reply(ctx, message.chat_id, f"✅ Receipt <code>{short_id(receipt.id)}</code> deleted.")


async def handle_help(ctx: BotContext, message: Message) -> None:
    await _reply(
        ctx,
        message.chat_id,
        "📖 <b>UniBon help</b>\n\n"
        "📸 <b>Analyze a receipt:</b> just send a photo of it\n"
        "✏️ <b>Log an expense:</b> just describe it in text (e.g. \"Starbucks latte 4.50 EUR\")\n\n"
        "📌 <b>Commands:</b>\n"
        "/start - get started\n"
        "/setkey KEY - set your OpenAI API key\n"
        "/stats - spending statistics\n"
        "/history - recent receipts\n"
        "/receipt_ID - receipt details (first 8 characters of the ID)\n"
        "/delete ID - delete a receipt\n"
        "/help - this help"
    )


async def handle_unknown_command(ctx: BotContext, message: Message) -> None:
    await _reply(ctx, message.chat_id, "❓ Unknown command. Use /help to see the available commands.")


def _load_credentials(ctx: BotContext, message: Message) -> tuple[str, Optional[str]]:
    """Provision the chat if needed; return (user_id, api_key)."""
    with ctx.session_factory() as db:
        session = get_or_create_chat_session(db, str(message.chat_id), sender_name(message))
        return session.user_id, session.api_key or None


def _store_analysis(
    ctx: BotContext,
    message: Message,
    user_id: str,
    raw_result: str,
    notes: Optional[str] = None,
) -> str:
    """Turn raw model output into the reply text, persisting only on success."""
    outcome = parse_analysis(raw_result)

    if isinstance(outcome, ExtractionParseFailure):
        logger.warning(f"Unparsable extraction for chat_id={message.chat_id}: {outcome.reason}")
        return PARSE_ERROR

    if isinstance(outcome, ExtractionDomainError):
        logger.info(f"Extraction refused for chat_id={message.chat_id}: {outcome.message}")
        return f"⚠️ Analysis result: {escape(outcome.message)}"

    with ctx.session_factory() as db:
        saved = create_receipt_for_account(db, user_id, outcome.result, notes=notes, raw_response=raw_result)

    return format_saved_receipt(saved)


async def handle_photo(ctx: BotContext, message: Message) -> None:
    """
    Receipt photo: download the largest variant, send it to the model, save.

    Failures up to and including the save are reported to the chat. The
    final reply is sent outside that block: once a receipt is stored the
    user is never told the analysis failed.
    """
    chat_id = message.chat_id
    try:
        user_id, api_key = _load_credentials(ctx, message)
        if not api_key:
            await _reply(ctx, chat_id, SET_KEY_FIRST)
            return

        await ctx.telegram.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)

        file = await ctx.telegram.get_file(largest_photo(message).file_id)
        if not file.file_path:
            await _reply(ctx, chat_id, "❌ Could not fetch the photo file.")
            return

        content = await file.download_as_bytearray()
        image_data = build_data_uri(bytes(content), file.file_path)

        await _reply(ctx, chat_id, "🔍 Analyzing receipt...")
        raw_result = await asyncio.to_thread(ctx.extractor.analyze_receipt_image, image_data, api_key)

        reply = _store_analysis(ctx, message, user_id, raw_result, notes=message.caption or None)

    except Exception as e:
        logger.error(f"Photo analysis error for chat_id={chat_id}: {e}", exc_info=True)
        await _reply(ctx, chat_id, f"❌ Analysis failed: {escape(str(e) or 'unknown error')}")
        return

    await _reply(ctx, chat_id, reply)


async def handle_text_receipt(ctx: BotContext, message: Message) -> None:
    """Free-form expense description, same pipeline as photos minus the image."""
    chat_id = message.chat_id
    try:
        user_id, api_key = _load_credentials(ctx, message)
        if not api_key:
            await _reply(ctx, chat_id, SET_KEY_FIRST)
            return

        await ctx.telegram.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)

        raw_result = await asyncio.to_thread(ctx.extractor.analyze_receipt_text, message.text, api_key)

        reply = _store_analysis(ctx, message, user_id, raw_result)

    except Exception as e:
        logger.error(f"Text analysis error for chat_id={chat_id}: {e}", exc_info=True)
        await _reply(ctx, chat_id, f"❌ Processing failed: {escape(str(e) or 'unknown error')}")
        return

    await _reply(ctx, chat_id, reply)

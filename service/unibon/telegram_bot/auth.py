"""
Bridge between Telegram chats and accounts.

Every chat is backed by a regular account so receipts saved from the bot
are visible through the REST API too. Chat users never pick a password,
so the account gets a placeholder email and a random one.
"""

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from unibon.models.tables import ChatSession
from unibon.services.accounts import create_account
from .logging_config import bot_logger as logger


def placeholder_email(chat_id: str) -> str:
    return f"tg_{chat_id}@telegram.local"


def find_chat_session(db: Session, chat_id: str) -> Optional[ChatSession]:
    """Pure lookup, None when the chat never talked to the bot."""
    return db.get(ChatSession, str(chat_id))


def get_or_create_chat_session(db: Session, chat_id: str, display_name: str) -> ChatSession:
    """
    Find or create the chat session (and its account) for chat_id.

    Safe to call repeatedly: an existing session is returned unchanged.
    A failure to create the account (e.g. the placeholder email already
    taken by an orphaned account) propagates; it is a data problem, not a
    user error.
    """
    chat_id = str(chat_id)
    existing = find_chat_session(db, chat_id)
    if existing:
        return existing

    logger.info(f"Provisioning account for chat_id={chat_id}, display_name={display_name}")

    try:
        account = create_account(
            db,
            email=placeholder_email(chat_id),
            password=str(uuid.uuid4()),
            name=display_name or f"User {chat_id}",
            commit=False,
        )
        session = ChatSession(chat_id=chat_id, user_id=account.id, api_key=None)
        db.add(session)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to provision chat_id={chat_id}: {e}", exc_info=True)
        raise

    logger.info(f"Created account user_id={account.id} for chat_id={chat_id}")
    return session


def set_api_key(db: Session, chat_id: str, api_key: str) -> bool:
    """Store the chat's API key. False if the chat has no session."""
    session = find_chat_session(db, chat_id)
    if session is None:
        return False
    session.api_key = api_key
    db.commit()
    return True


def get_api_key(db: Session, chat_id: str) -> Optional[str]:
    session = find_chat_session(db, chat_id)
    if session is None:
        return None
    return session.api_key or None

"""
SQLAlchemy models for accounts, chat sessions and receipts.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from unibon.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    """ISO-8601 timestamp; stored as text so ordering is lexicographic."""
    return datetime.now(timezone.utc).isoformat()


class Account(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)  # salt:hash
    name = Column(String, nullable=False)
    created_at = Column(String, nullable=False, default=utc_now)

    chat_sessions = relationship("ChatSession", back_populates="account", cascade="all, delete-orphan", passive_deletes=True)
    links = relationship("UserReceipt", back_populates="account", cascade="all, delete-orphan", passive_deletes=True)


class ChatSession(Base):
    """Telegram chat bound to an account, plus the user's own AI API key."""
    __tablename__ = "telegram_users"

    chat_id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    api_key = Column("google_api_key", String, nullable=True)
    created_at = Column(String, nullable=False, default=utc_now)

    account = relationship("Account", back_populates="chat_sessions")


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True, default=new_id)
    store_name = Column(String)
    date = Column(String, index=True)
    time = Column(String)
    subtotal = Column(Float)
    tax = Column(Float)
    total_amount = Column(Float)
    currency = Column(String)
    payment_method = Column(String)
    raw_response = Column(Text)
    created_at = Column(String, nullable=False, default=utc_now)

    items = relationship(
        "ReceiptItem",
        back_populates="receipt",
        order_by="ReceiptItem.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    links = relationship("UserReceipt", back_populates="receipt", cascade="all, delete-orphan", passive_deletes=True)


class ReceiptItem(Base):
    __tablename__ = "receipt_items"

    id = Column(String, primary_key=True, default=new_id)
    receipt_id = Column(String, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    category = Column(String)  # "pfand" marks a bottle deposit
    position = Column(Integer, nullable=False, default=0)

    receipt = relationship("Receipt", back_populates="items")


class UserReceipt(Base):
    """Ownership link between an account and a receipt."""
    __tablename__ = "user_receipts"
    __table_args__ = (UniqueConstraint("user_id", "receipt_id", name="uq_user_receipt"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receipt_id = Column(String, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    added_at = Column(String, nullable=False, default=utc_now)
    notes = Column(Text)

    account = relationship("Account", back_populates="links")
    receipt = relationship("Receipt", back_populates="links")

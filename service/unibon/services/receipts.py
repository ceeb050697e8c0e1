"""
Receipt storage.

Receipts are shared objects; an account sees a receipt through a
UserReceipt link (added_at + notes). Every read that is scoped to an
account therefore goes through the link table and returns
UserReceiptOut, the receipt flattened together with its link details.
"""

import json
import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from unibon.agents.schemas import (
    ReceiptAnalysisResult,
    ReceiptItemOut,
    ReceiptStats,
    UserReceiptOut,
)
from unibon.models.tables import Receipt, ReceiptItem, UserReceipt

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 8


def short_id(receipt_id: str) -> str:
    return receipt_id[:SHORT_ID_LENGTH]


def _to_user_receipt(receipt: Receipt, link: UserReceipt) -> UserReceiptOut:
    return UserReceiptOut(
        id=receipt.id,
        store_name=receipt.store_name,
        date=receipt.date,
        time=receipt.time,
        subtotal=receipt.subtotal,
        tax=receipt.tax,
        total_amount=receipt.total_amount,
        currency=receipt.currency,
        payment_method=receipt.payment_method,
        raw_response=receipt.raw_response,
        created_at=receipt.created_at,
        items=[ReceiptItemOut.model_validate(item) for item in receipt.items],
        user_receipt_id=link.id,
        added_at=link.added_at,
        notes=link.notes,
    )


def create_receipt(
    db: Session,
    analysis: ReceiptAnalysisResult,
    raw_response: Optional[str] = None,
) -> Receipt:
    """
    Stage a receipt and its items in the session (flushed, not committed).

    The caller owns the transaction so header and items land together.
    """
    receipt = Receipt(
        store_name=analysis.store_name,
        date=analysis.date,
        time=analysis.time,
        subtotal=analysis.subtotal,
        tax=analysis.tax,
        total_amount=analysis.total_amount,
        currency=analysis.currency,
        payment_method=analysis.payment_method,
        raw_response=raw_response or json.dumps(analysis.model_dump()),
    )
    receipt.items = [
        ReceiptItem(
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            category=item.category,
            position=position,
        )
        for position, item in enumerate(analysis.items)
    ]
    db.add(receipt)
    db.flush()
    return receipt


def link_receipt_to_account(
    db: Session,
    account_id: str,
    receipt_id: str,
    notes: Optional[str] = None,
    commit: bool = True,
) -> UserReceipt:
    """
    Give an account access to a receipt.

    A second link for the same (account, receipt) pair violates
    uq_user_receipt and raises sqlalchemy.exc.IntegrityError.
    """
    link = UserReceipt(user_id=account_id, receipt_id=receipt_id, notes=notes or None)
    db.add(link)
    if commit:
        db.commit()
    else:
        db.flush()
    return link


def create_receipt_for_account(
    db: Session,
    account_id: str,
    analysis: ReceiptAnalysisResult,
    notes: Optional[str] = None,
    raw_response: Optional[str] = None,
) -> UserReceiptOut:
    """Persist a receipt, its items and the ownership link in one transaction."""
    try:
        receipt = create_receipt(db, analysis, raw_response)
        link = link_receipt_to_account(db, account_id, receipt.id, notes, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Saved receipt {short_id(receipt.id)} ({len(receipt.items)} items) for user_id={account_id}")
    return _to_user_receipt(receipt, link)


def _account_links_query(account_id: str):
    return (
        select(UserReceipt)
        .where(UserReceipt.user_id == account_id)
        .options(selectinload(UserReceipt.receipt).selectinload(Receipt.items))
        .order_by(UserReceipt.added_at.desc(), UserReceipt.id.desc())
    )


def list_receipts_for_account(db: Session, account_id: str) -> list[UserReceiptOut]:
    """All receipts linked to the account, most recently linked first."""
    links = db.scalars(_account_links_query(account_id)).all()
    return [_to_user_receipt(link.receipt, link) for link in links]


def get_account_receipt(db: Session, account_id: str, receipt_id: str) -> Optional[UserReceiptOut]:
    link = db.scalar(_account_links_query(account_id).where(UserReceipt.receipt_id == receipt_id))
    if link is None:
        return None
    return _to_user_receipt(link.receipt, link)


def find_receipt_by_prefix(db: Session, account_id: str, id_prefix: str) -> Optional[UserReceiptOut]:
    """
    First of the account's receipts whose id starts with id_prefix.

    Scans newest-linked first, so on a prefix shared by several receipts
    the most recently added one wins.
    """
    prefix = id_prefix.strip().lower()
    if not prefix:
        return None
    for receipt in list_receipts_for_account(db, account_id):
        if receipt.id.lower().startswith(prefix):
            return receipt
    return None


def unlink_receipt(db: Session, account_id: str, receipt_id: str) -> bool:
    result = db.execute(
        delete(UserReceipt).where(
            UserReceipt.user_id == account_id,
            UserReceipt.receipt_id == receipt_id,
        )
    )
    db.commit()
    return result.rowcount > 0


def delete_receipt(db: Session, receipt_id: str) -> bool:
    """Delete a receipt; items and any remaining links go with it."""
    receipt = db.get(Receipt, receipt_id)
    if receipt is None:
        return False
    db.delete(receipt)
    db.commit()
    return True


def update_receipt_notes(db: Session, account_id: str, receipt_id: str, notes: Optional[str]) -> bool:
    link = db.scalar(
        select(UserReceipt).where(
            UserReceipt.user_id == account_id,
            UserReceipt.receipt_id == receipt_id,
        )
    )
    if link is None:
        return False
    link.notes = notes
    db.commit()
    return True


def stats_for_account(db: Session, account_id: str) -> ReceiptStats:
    """Count, sum and mean of the totals of the account's receipts."""
    count, total, average = db.execute(
        select(
            func.count(Receipt.id),
            func.coalesce(func.sum(Receipt.total_amount), 0),
            func.coalesce(func.avg(Receipt.total_amount), 0),
        )
        .join(UserReceipt, UserReceipt.receipt_id == Receipt.id)
        .where(UserReceipt.user_id == account_id)
    ).one()

    return ReceiptStats(
        totalReceipts=count,
        totalAmount=float(total),
        averageAmount=float(average),
    )

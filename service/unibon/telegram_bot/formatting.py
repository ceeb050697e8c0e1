"""
Reply rendering for the bot (Telegram HTML parse mode).

Only <b> and <code> are used; everything that came from a user or the
model goes through html.escape first.
"""

import html
from typing import Optional

from unibon.agents.schemas import ReceiptStats, UserReceiptOut
from unibon.services.receipts import short_id

# Keeps a rendered receipt well under Telegram's 4096 character limit
MAX_ITEM_LINES = 40


def escape(value) -> str:
    return html.escape(str(value), quote=False)


def format_number(value: Optional[float]) -> str:
    """12.0 -> "12", 12.5 -> "12.5"; keeps receipts readable."""
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_receipt(receipt: UserReceiptOut) -> str:
    lines = [
        f"🧾 <b>{escape(receipt.store_name or 'Unknown store')}</b>",
        f"📅 {escape(receipt.date or 'Unknown date')}  🕐 {escape(receipt.time or '')}".rstrip(),
    ]

    if receipt.items:
        lines.append("")
        lines.append("📦 <b>Items:</b>")
        for item in receipt.items[:MAX_ITEM_LINES]:
            lines.append(
                f"  • {escape(item.name[:80])}  ×{format_number(item.quantity)}  {format_number(item.total_price)}"
            )
        hidden = len(receipt.items) - MAX_ITEM_LINES
        if hidden > 0:
            lines.append(f"  … and {hidden} more")

    summary = []
    if receipt.subtotal is not None:
        summary.append(f"Subtotal: {format_number(receipt.subtotal)}")
    if receipt.tax is not None:
        summary.append(f"Tax: {format_number(receipt.tax)}")
    if summary:
        lines.append("")
        lines.append("  ".join(summary))

    total = format_number(receipt.total_amount) if receipt.total_amount is not None else "unknown"
    currency = f" {escape(receipt.currency)}" if receipt.currency else ""
    lines.append(f"💰 <b>Total: {total}{currency}</b>")

    if receipt.payment_method:
        lines.append(f"💳 {escape(receipt.payment_method)}")

    return "\n".join(lines)


def format_saved_receipt(receipt: UserReceiptOut) -> str:
    return f"{format_receipt(receipt)}\n\n✅ Saved (ID: <code>{short_id(receipt.id)}</code>)"


def format_stats(stats: ReceiptStats) -> str:
    return (
        "📊 <b>Spending statistics</b>\n\n"
        f"🧾 Receipts: <b>{stats.totalReceipts}</b>\n"
        f"💰 Total spent: <b>{stats.totalAmount:.2f}</b>\n"
        f"📈 Average per receipt: <b>{stats.averageAmount:.2f}</b>"
    )


def format_history(receipts: list[UserReceiptOut]) -> str:
    lines = [f"📋 <b>Last {len(receipts)} receipts</b>", ""]
    for r in receipts:
        total = format_number(r.total_amount) if r.total_amount is not None else "?"
        lines.append(
            f"🧾 <code>{short_id(r.id)}</code> | {escape(r.date or 'unknown')} | "
            f"{escape(r.store_name or 'unknown')} | {total} {escape(r.currency or '')}".rstrip()
        )
    lines.append("")
    lines.append("Details: /receipt_&lt;first 8 characters of the ID&gt;")
    return "\n".join(lines)

"""
Tests for bot reply rendering.
"""

from unibon.agents.schemas import ReceiptItemOut, ReceiptStats, UserReceiptOut
from unibon.telegram_bot.formatting import (
    MAX_ITEM_LINES,
    format_history,
    format_number,
    format_receipt,
    format_saved_receipt,
    format_stats,
)


def receipt(**fields) -> UserReceiptOut:
    data = {
        "id": "ab12cd34-0000-0000-0000-000000000000",
        "created_at": "2024-03-15T14:30:00+00:00",
        "user_receipt_id": "link-1",
        "added_at": "2024-03-15T14:30:00+00:00",
    }
    data.update(fields)
    return UserReceiptOut(**data)


class TestFormatNumber:

    def test_integer_value(self):
        assert format_number(12.0) == "12"

    def test_fraction(self):
        assert format_number(12.5) == "12.5"
        assert format_number(2.18) == "2.18"

    def test_rounds_to_cents(self):
        assert format_number(0.001) == "0"

    def test_none(self):
        assert format_number(None) == ""


class TestFormatReceipt:

    def test_full_receipt(self):
        text = format_receipt(receipt(
            store_name="REWE",
            date="2024-03-15",
            time="14:30",
            items=[ReceiptItemOut(name="Milch", quantity=2, unit_price=1.09, total_price=2.18)],
            subtotal=2.18,
            tax=0.14,
            total_amount=2.18,
            currency="EUR",
            payment_method="card",
        ))

        assert "🧾 <b>REWE</b>" in text
        assert "📅 2024-03-15  🕐 14:30" in text
        assert "  • Milch  ×2  2.18" in text
        assert "Subtotal: 2.18  Tax: 0.14" in text
        assert "💰 <b>Total: 2.18 EUR</b>" in text
        assert "💳 card" in text

    def test_sparse_receipt(self):
        text = format_receipt(receipt())

        assert "Unknown store" in text
        assert "Unknown date" in text
        assert "Items" not in text
        assert "Subtotal" not in text
        assert "💰 <b>Total: unknown</b>" in text
        assert "💳" not in text

    def test_escapes_model_output(self):
        text = format_receipt(receipt(store_name="<script>", items=[
            ReceiptItemOut(name="A & B", quantity=1, unit_price=1, total_price=1),
        ]))

        assert "&lt;script&gt;" in text
        assert "A &amp; B" in text

    def test_long_item_list_is_capped(self):
        items = [
            ReceiptItemOut(name=f"Item {i}", quantity=1, unit_price=1, total_price=1)
            for i in range(MAX_ITEM_LINES + 5)
        ]

        text = format_saved_receipt(receipt(store_name="Metro", items=items))

        assert text.count("  • ") == MAX_ITEM_LINES
        assert "  … and 5 more" in text
        assert len(text) < 4096

    def test_saved_receipt_shows_short_id(self):
        text = format_saved_receipt(receipt(store_name="REWE"))

        assert text.endswith("✅ Saved (ID: <code>ab12cd34</code>)")


class TestFormatStats:

    def test_two_decimals(self):
        text = format_stats(ReceiptStats(totalReceipts=2, totalAmount=330, averageAmount=165))

        assert "Receipts: <b>2</b>" in text
        assert "Total spent: <b>330.00</b>" in text
        assert "Average per receipt: <b>165.00</b>" in text


class TestFormatHistory:

    def test_lines(self):
        text = format_history([
            receipt(store_name="REWE", date="2024-03-15", total_amount=2.43, currency="EUR"),
            receipt(id="ffff0000-0000-0000-0000-000000000000"),
        ])

        lines = text.splitlines()
        assert lines[0] == "📋 <b>Last 2 receipts</b>"
        assert lines[2] == "🧾 <code>ab12cd34</code> | 2024-03-15 | REWE | 2.43 EUR"
        assert lines[3] == "🧾 <code>ffff0000</code> | unknown | unknown | ?"

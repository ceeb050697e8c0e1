from .tables import Account, ChatSession, Receipt, ReceiptItem, UserReceipt

__all__ = ["Account", "ChatSession", "Receipt", "ReceiptItem", "UserReceipt"]

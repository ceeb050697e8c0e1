from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class ReceiptItemData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = "Unknown item"
    quantity: float = 1
    unit_price: float = 0
    total_price: float = 0
    category: Optional[str] = None  # "pfand" for deposits

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value):
        return "Unknown item" if value in (None, "") else value

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_default(cls, value):
        return 1 if value is None else value

    @field_validator("unit_price", "total_price", mode="before")
    @classmethod
    def _price_default(cls, value):
        return 0 if value is None else value


class ReceiptAnalysisResult(BaseModel):
    """Structured receipt as returned by the extraction model."""
    model_config = ConfigDict(extra="ignore")

    store_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    items: list[ReceiptItemData] = Field(default_factory=list)
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    error: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def _items_default(cls, value):
        return [] if value is None else value


# API Request/Response models

class AnalyzeReceiptRequest(BaseModel):
    image: Optional[str] = Field(None, description="Base64 image or data URI")
    apiKey: Optional[str] = None


class SaveReceiptRequest(BaseModel):
    receipt: Optional[ReceiptAnalysisResult] = None
    notes: Optional[str] = None


class UpdateNotesRequest(BaseModel):
    notes: Optional[str] = None


class ReceiptItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    receipt_id: Optional[str] = None
    name: str
    quantity: float
    unit_price: float
    total_price: float
    category: Optional[str] = None


class ReceiptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    store_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    raw_response: Optional[str] = None
    created_at: str
    items: list[ReceiptItemOut] = Field(default_factory=list)


class UserReceiptOut(ReceiptOut):
    user_receipt_id: str
    added_at: str
    notes: Optional[str] = None


class ReceiptStats(BaseModel):
    totalReceipts: int
    totalAmount: float
    averageAmount: float

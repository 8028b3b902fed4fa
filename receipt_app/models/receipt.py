"""
Pydantic models for receipts.
"""

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional
from decimal import Decimal


# Decimal internally, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used='json')]


class ReceiptRecord(BaseModel):
    """Structured fields extracted from one receipt's OCR text."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    raw_text: str
    amount: Optional[Money] = None
    subtotal_amount: Optional[Money] = None
    tax_amount: Optional[Money] = None
    tax_percentage: Optional[Money] = None
    invoice_number: Optional[str] = None
    date: Optional[str] = None  # Literal substring, not a calendar date
    vendor_name: Optional[str] = None


class ReceiptResult(BaseModel):
    """Model for receipt API responses."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    filename: Optional[str] = None
    uploaded_at: str  # ISO-8601, UTC
    data: ReceiptRecord

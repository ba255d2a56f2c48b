from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime, date
from .common import gen_id


class QuotationStatus(str, Enum):
    """draft -> sent -> accepted | rejected. Transitions are not enforced."""

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class LineItemInput(BaseModel):
    # raw row as typed by the user; numbers are coerced later
    description: Any = ""
    quantity: Any = 0
    unit_price: Any = 0

    class Config:
        extra = "ignore"  # any client-side "total" is dropped here


class LineItem(BaseModel):
    description: str
    quantity: float = 0.0
    unit_price: float = 0.0
    total: float = 0.0  # always quantity * unit_price, rounded

    class Config:
        frozen = True


class CreateQuotationInput(BaseModel):
    client_name: Any = ""
    client_email: Any = ""
    client_address: Any = ""
    client_phone: Any = ""

    items: List[LineItemInput] = Field(default_factory=list)
    tax_rate: Any = 0

    notes: Any = ""
    valid_until: Any = None

    status: QuotationStatus = QuotationStatus.DRAFT

    class Config:
        extra = "ignore"


class UpdateQuotationInput(CreateQuotationInput):
    # replaced wholesale on update
    status: QuotationStatus


class Quotation(BaseModel):
    id: str = Field(default_factory=gen_id)
    document_number: str

    user_id: str
    project_id: Optional[str] = None
    company_name: str = ""

    client_name: str
    client_email: str
    client_email_lower: str
    client_address: str
    client_phone: str = ""

    items: List[LineItem]
    subtotal: float
    tax_rate: float
    tax_amount: float
    total: float

    notes: str = ""
    valid_until: Optional[date] = None

    status: QuotationStatus = QuotationStatus.DRAFT

    created_at: datetime
    updated_at: datetime

    @property
    def is_standalone(self) -> bool:
        return self.project_id is None

    class Config:
        frozen = True
        extra = "ignore"  # tolerate legacy keys in stored JSON

from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime, date
from .common import gen_id
from .quote import LineItem, LineItemInput


class InvoiceStatus(str, Enum):
    """pending -> paid | cancelled. Transitions are not enforced."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class InvoiceTemplate(str, Enum):
    CLASSIC = "classic"
    MODERN = "modern"
    MINIMAL = "minimal"


# ---------- input ---------- #

class MilestoneInput(BaseModel):
    title: Any = ""
    description: Any = ""
    due_date: Any = None
    status: MilestoneStatus = MilestoneStatus.NOT_STARTED
    items: List[LineItemInput] = Field(default_factory=list)

    class Config:
        extra = "ignore"  # "subtotal" is recomputed


class DepositInput(BaseModel):
    enabled: bool = False
    rate_percent: Any = 0
    due_date: Any = None
    notes: Any = ""

    class Config:
        extra = "ignore"  # "amount" is recomputed


class BillingInput(BaseModel):
    business_name: Any = ""
    contact_name: Any = ""
    email: Any = ""
    phone: Any = ""
    address: Any = ""

    bank_name: Any = ""
    account_name: Any = ""
    account_number: Any = ""
    branch_code: Any = ""
    account_type: Any = ""
    payment_reference_note: Any = ""

    class Config:
        extra = "ignore"


class CreateInvoiceInput(BaseModel):
    client_name: Any = ""
    client_email: Any = ""
    client_address: Any = ""
    client_phone: Any = ""

    billing: Optional[BillingInput] = None
    milestones: List[MilestoneInput] = Field(default_factory=list)
    deposit: Optional[DepositInput] = None

    tax_rate: Any = 0
    due_date: Any = None
    status: InvoiceStatus = InvoiceStatus.PENDING
    template_id: InvoiceTemplate = InvoiceTemplate.CLASSIC

    class Config:
        extra = "ignore"


class UpdateInvoiceInput(BaseModel):
    """Every field optional; omitted fields keep their stored value."""

    client_name: Any = None
    client_email: Any = None
    client_address: Any = None
    client_phone: Any = None

    billing: Optional[BillingInput] = None
    milestones: Optional[List[MilestoneInput]] = None
    deposit: Optional[DepositInput] = None

    tax_rate: Any = None
    due_date: Any = None
    status: Optional[InvoiceStatus] = None
    template_id: Optional[InvoiceTemplate] = None

    class Config:
        extra = "ignore"


# ---------- computed document ---------- #

class Milestone(BaseModel):
    title: str
    description: str = ""
    due_date: Optional[date] = None
    status: MilestoneStatus = MilestoneStatus.NOT_STARTED
    items: List[LineItem]
    subtotal: float

    class Config:
        frozen = True


class Deposit(BaseModel):
    enabled: bool = False
    rate_percent: float = 0.0  # kept even when disabled
    amount: float = 0.0
    due_date: Optional[date] = None
    notes: str = ""

    class Config:
        frozen = True


class BillingProfile(BaseModel):
    business_name: str = "Company"
    contact_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""

    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    branch_code: str = ""
    account_type: str = ""
    payment_reference_note: str = ""

    class Config:
        frozen = True


class Invoice(BaseModel):
    id: str = Field(default_factory=gen_id)
    document_number: str

    user_id: str
    project_id: str

    client_name: str
    client_email: str
    client_email_lower: str
    client_address: str = ""
    client_phone: str = ""

    billing: BillingProfile = Field(default_factory=BillingProfile)
    milestones: List[Milestone]

    subtotal: float
    tax_rate: float
    tax_amount: float
    total_amount: float

    deposit: Deposit = Field(default_factory=Deposit)

    status: InvoiceStatus = InvoiceStatus.PENDING
    template_id: InvoiceTemplate = InvoiceTemplate.CLASSIC
    due_date: date

    created_at: datetime
    updated_at: datetime

    @property
    def items(self) -> List[LineItem]:
        """All line items, milestone by milestone."""
        return [it for m in self.milestones for it in m.items]

    def balance_after_deposit(self) -> float:
        from billing.services.money import round2
        return round2(self.total_amount - self.deposit.amount)

    class Config:
        frozen = True
        extra = "ignore"

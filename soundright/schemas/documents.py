import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from enum import Enum

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel, MAX_QUANTITY, empty_to_none
from .equipment import EquipmentSummary


class QuoteStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


# ---------- LINE ITEMS ----------
class LineItemInput(CamelModel):
    """Line item payload; any client-sent ``totalPrice`` is ignored and recomputed."""
    equipment_id: Optional[uuid.UUID] = None
    description: str = Field(min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("equipment_id", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return v.strip() if isinstance(v, str) else v


class LineItemResponse(CamelModel):
    id: uuid.UUID
    equipment_id: Optional[uuid.UUID] = None
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    equipment: Optional[EquipmentSummary] = None


class QuoteItemResponse(LineItemResponse):
    quote_id: uuid.UUID


class InvoiceItemResponse(LineItemResponse):
    invoice_id: uuid.UUID


# ---------- HEADERS ----------
class DocumentHeaderBase(CamelModel):
    project_id: Optional[uuid.UUID] = None
    client_name: str = Field(min_length=1, max_length=100)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(default=None, max_length=20)
    client_address: Optional[str] = None
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)
    notes: Optional[str] = None

    @field_validator("project_id", "client_email", "client_phone", "client_address", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)


class DocumentHeaderUpdate(CamelModel):
    """Partial header update; only fields present in the body are written."""
    project_id: Optional[uuid.UUID] = None
    client_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(default=None, max_length=20)
    client_address: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=2)
    notes: Optional[str] = None

    @field_validator("project_id", "client_email", "client_phone", "client_address", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        return empty_to_none(v)

    @field_validator("client_name", "tax_rate")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Value cannot be null")
        return v


class QuoteCreate(DocumentHeaderBase):
    quote_date: date = Field(default_factory=date.today)
    valid_until: Optional[date] = None
    status: QuoteStatus = QuoteStatus.draft
    terms_conditions: Optional[str] = None

    @field_validator("valid_until", "terms_conditions", mode="before")
    @classmethod
    def optional_empty_to_none(cls, v):
        return empty_to_none(v)


class QuoteUpdate(DocumentHeaderUpdate):
    quote_date: Optional[date] = None
    valid_until: Optional[date] = None
    status: Optional[QuoteStatus] = None
    terms_conditions: Optional[str] = None

    @field_validator("valid_until", "terms_conditions", mode="before")
    @classmethod
    def optional_empty_to_none(cls, v):
        return empty_to_none(v)

    @field_validator("quote_date", "status")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("Value cannot be null")
        return v


class InvoiceCreate(DocumentHeaderBase):
    quote_id: Optional[uuid.UUID] = None
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.draft
    payment_terms: Optional[str] = Field(default=None, max_length=100)

    @field_validator("quote_id", "due_date", "payment_terms", mode="before")
    @classmethod
    def optional_empty_to_none(cls, v):
        return empty_to_none(v)


class InvoiceUpdate(DocumentHeaderUpdate):
    quote_id: Optional[uuid.UUID] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    payment_terms: Optional[str] = Field(default=None, max_length=100)

    @field_validator("quote_id", "due_date", "payment_terms", mode="before")
    @classmethod
    def optional_empty_to_none(cls, v):
        return empty_to_none(v)

    @field_validator("invoice_date", "status")
    @classmethod
    def required_not_null(cls, v):
        if v is None:
            raise ValueError("Value cannot be null")
        return v


class DocumentResponseBase(CamelModel):
    id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    project_name: Optional[str] = None
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    created_by: uuid.UUID
    created_by_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class QuoteResponse(DocumentResponseBase):
    quote_number: str
    quote_date: date
    valid_until: Optional[date] = None
    status: QuoteStatus
    terms_conditions: Optional[str] = None


class QuoteDetail(QuoteResponse):
    items: List[QuoteItemResponse] = []


class InvoiceResponse(DocumentResponseBase):
    invoice_number: str
    quote_id: Optional[uuid.UUID] = None
    quote_number: Optional[str] = None
    invoice_date: date
    due_date: Optional[date] = None
    status: InvoiceStatus
    payment_terms: Optional[str] = None


class InvoiceDetail(InvoiceResponse):
    items: List[InvoiceItemResponse] = []
